"""
NEXE Command Line Interface (CLI)
=================================

This file provides the interactive terminal program you run like:

    python -m nexe.cli --exposure data/country_exposure_long.csv \\
                       --plants data/plants_exposure_clean.csv \\
                       --boundaries data/world.geojson

It demonstrates:
- Argument parsing (argparse)
- A REPL loop (Read-Eval-Print Loop) for commands
- Mapping user commands to view-state transitions and queries

The CLI does not modify the data files. It loads them once and only changes
the in-memory view state.
"""

from __future__ import annotations
import argparse, logging, shlex, sys
from typing import Optional

from .engine import NEXE, ViewModel
from .loader import LoadError, load_sources
from .models import resolve_alias
from .playback import TICK_SECONDS
from .state import Baseline

HELP = """
NEXE commands
-------------

1) View state
   state                            current year, buffer, selection, overlay, playback
   year <y>                         (example: year 2000)
   buffer <km>                      (example: buffer 75)
   select <ISO3> | select none      (example: select FRA)
   plants on | plants off           plant overlay

2) Playback
   play                             cycle years every tick
   stop

3) Inspect
   view [n]                         map values for the current view
   profile [ISO3]                   exposure by buffer + summary
   rank [ISO3]                      rank at the current year/buffer
   top <k>                          most exposed countries
   plants list [n]                  plants visible at the current year/buffer

4) Output
   export csv "<out.csv>"           current view as CSV
   export json "<out.json>"         current view as JSON
   report "<out.docx>"              DOCX report of the current view

5) Exit
   quit
"""

# Commands that only read; everything else goes to the command log
_READ_ONLY = ("help", "state", "view", "profile", "rank", "top", "quit", "exit")


def main(argv: Optional[list] = None) -> int:
    """Entry point for the NEXE CLI.

    1) Load all sources (concurrently)
    2) Build indices
    3) Start an interactive REPL
    """
    ap = argparse.ArgumentParser(prog="nexe")
    ap.add_argument("--exposure", required=True, help="Country exposure table (CSV or XLSX)")
    ap.add_argument("--plants", required=True, help="Plant table (CSV or XLSX)")
    ap.add_argument("--boundaries", default=None, help="Country boundaries (GeoJSON)")
    ap.add_argument("--interval", type=float, default=TICK_SECONDS, help="Playback tick in seconds")
    ap.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...)")
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("Loading data...")
    try:
        store, features = load_sources(args.exposure, args.plants, args.boundaries)
    except LoadError as e:
        print(f"Failed to load data: {e}")
        return 1

    engine = NEXE.from_store(store, features, dataset_path=args.exposure, interval=args.interval)
    engine.on_render(_on_playback_render)

    print(f"Loaded {len(store.exposures)} exposure records, {len(store.plants)} plants. Type 'help' for commands.")
    while True:
        try:
            line = input("nexe> ")
        except EOFError:
            break
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.lower() in ("quit", "exit"):
            break
        if stripped.split()[0].lower() not in _READ_ONLY:
            engine.command_log.append(stripped)
        try:
            handle(engine, stripped)
        except Exception as e:
            print(f"Error: {e}")

    engine.stop()
    return 0


def _on_playback_render(view: ViewModel) -> None:
    if view.state.playing:
        print(f"\n[play] {view.title} ({view.state.buffer_km} km)")


def handle(engine: NEXE, line: str) -> None:
    """Handle one CLI command line.

    This parses the command and calls the appropriate engine method.
    """
    parts = shlex.split(line)
    cmd = parts[0].lower()
    q = engine.query
    snap = engine.state.snapshot()

    if cmd == "help":
        print(HELP)
        return

    if cmd == "state":
        print(f"year={snap.year} buffer={snap.buffer_km}km selected={engine.selected_label()} "
              f"plants={'on' if snap.show_plants else 'off'} playing={snap.playing}")
        print(engine.view.title)
        return

    if cmd == "year":
        view = engine.set_year(int(parts[1]))
        print(view.title)
        return

    if cmd == "buffer":
        engine.set_buffer(int(parts[1]))
        print(f"Buffer set to {parts[1]} km.")
        return

    if cmd == "select":
        target = parts[1] if len(parts) >= 2 else "none"
        view = engine.select(None if target.lower() == "none" else target)
        if view.state.selected is None:
            print("Selection cleared.")
        elif not view.selected_name:
            print(f"Selected {view.state.selected} (no exposure data).")
        else:
            print(f"Selected {view.selected_name}.")
        return

    if cmd == "plants":
        arg = parts[1].lower() if len(parts) >= 2 else ""
        if arg in ("on", "off"):
            view = engine.set_show_plants(arg == "on")
            print(f"Plant overlay {arg} ({len(view.plants)} plants shown).")
            return
        if arg == "list":
            n = int(parts[2]) if len(parts) >= 3 else 10
            rows = q.plants_visible_at(snap.year, snap.buffer_km)
            for p in rows[:n]:
                pop = p.population(snap.year, snap.buffer_km)
                print(f"{p.name} ({p.country}) | reactors={p.num_reactors} | "
                      f"{snap.buffer_km} km population {snap.year}: {pop / 1e6:.2f}M")
            if len(rows) > n:
                print(f"... ({len(rows)} total, showing {n})")
            return
        raise ValueError("plants must be: on | off | list [n]")

    if cmd == "play":
        print("Playing." if engine.play() else "Already playing.")
        return

    if cmd == "stop":
        print("Stopped." if engine.stop() else "Not playing.")
        return

    if cmd == "view":
        n = int(parts[1]) if len(parts) >= 2 else 20
        view = engine.view
        unit = "%" if isinstance(view.mode, Baseline) else "M"
        print(f"{view.title} (scale 0..{view.domain_max:.2f}{unit})")
        values = sorted(((k, v) for k, v in view.fills.items() if v is not None), key=lambda kv: kv[1], reverse=True)
        for iso3, v in values[:n]:
            print(f"{iso3}: {v:.2f}{unit}")
        if not values:
            print("No data for this view.")
        return

    if cmd == "profile":
        iso3 = (resolve_alias(parts[1]) or parts[1].upper()) if len(parts) >= 2 else snap.selected
        if not iso3:
            print("Select a country first (select <ISO3>) or pass one.")
            return
        from .summary import exposure_profile, narrative
        if not q.series_for(iso3):
            print(f"No exposure data for {iso3}.")
            return
        for row in exposure_profile(q, iso3, snap.year, engine.buffers):
            print(f"{row.buffer_km:>4} km: {row.pct_near:5.1f}% | {row.pop_near / 1e6:.2f}M people | plants={row.num_plants}")
        print(" ".join(narrative(q, iso3, snap.year, snap.buffer_km, engine.years, engine.buffers)))
        return

    if cmd == "rank":
        iso3 = (resolve_alias(parts[1]) or parts[1].upper()) if len(parts) >= 2 else snap.selected
        if not iso3:
            print("Select a country first (select <ISO3>) or pass one.")
            return
        info = q.rank_at(iso3, snap.year, snap.buffer_km)
        if info is None:
            print(f"{iso3} has no rank at {snap.year}/{snap.buffer_km} km.")
        else:
            print(f"{iso3}: rank {info.rank} of {info.total} (top {info.percentile:.0f}%)")
        return

    if cmd == "top":
        k = int(parts[1]) if len(parts) >= 2 else 10
        for r in q.top_exposed(snap.year, snap.buffer_km, k):
            print(f"{r.label} ({r.iso3}): {r.pct_near:.1f}%")
        return

    if cmd == "export":
        # export <csv|json> "<path>"
        if len(parts) < 3:
            print('Usage: export csv "out.csv"  OR  export json "out.json"')
            return
        from .report import export_view
        fmt = parts[1].lower()
        path = export_view(engine, parts[2], fmt)
        print(f"Exported {fmt.upper()} to {path}")
        return

    if cmd == "report":
        # report "<path.docx>"
        from .report import DatasetCitation, ReportConfig, generate_docx_report
        import os
        if len(parts) < 2:
            print('Usage: report "out.docx"')
            return
        p = engine.dataset_path
        cfg = ReportConfig(
            citation=DatasetCitation(file_name=os.path.basename(p) if p else None),
            command_log=engine.command_log,
        )
        path = generate_docx_report(engine, parts[1], config=cfg)
        print(f"Report written to {path}")
        return

    print("Unknown command. Type 'help'.")


if __name__ == "__main__":
    sys.exit(main())
