"""
Polyminis – Main Entry Point
============================

Usage examples:
  python main.py                          # default: nomad scenario
  python main.py --scenario shape         # reward bodies close to 10 cells
  python main.py --scenario target        # reward ending near the centre
  python main.py --scenario survive       # reward staying alive
  python main.py --epochs 200 --pop 30    # custom parameters
  python main.py --species 2 --heat       # two species, one heat source
  python main.py --run run.json           # load a JSON run file
  python main.py --no_mutation            # turn off mutations (demonstration)
"""

import argparse
import logging
import os

from environment import Environment, WorldObject
from exceptions import PolyminiError
from genetics import GAConfig, parse_evaluators
from simulation import Simulation
from visualizer import (ensure_dirs, save_world_snapshot,
                        save_evolution_chart, save_morphology_diagram,
                        append_csv)
from config import (SAVE_DIR, SNAPSHOT_INTERVAL, LOG_LEVEL,
                    POPULATION, MAX_EPOCHS, MAX_STEPS, RESTARTS,
                    GENOME_SIZE, MUTATION_RATE, SPECIES_SLOTS)


# ──────────────────────────────────────────────────────────────────────────────
# Scenarios
# ──────────────────────────────────────────────────────────────────────────────

SCENARIOS = {
    "nomad": (
        ["overallmovement", "distancetravelled"],
        "Nomadic instinct.\n"
        "Individuals score for every tick they try to move and for the\n"
        "distance between start and end position.\n"
        "Expected: bodies with movement actuators that avoid walls."
    ),
    "shape": (
        ["shape", "alive"],
        "Hoarding instinct.\n"
        "Bodies closest to 10 placed segments score highest.\n"
        "Expected: genomes whose adjacency bits connect every gene."
    ),
    "target": (
        [{"Name": "targetposition", "Target": [0.5, 0.5]}, "alive"],
        "Target position.\n"
        "Individuals score for ending close to the world centre.\n"
        "Expected: populations converge on the middle of the world."
    ),
    "survive": (
        ["alive", "overallmovement"],
        "Survival.\n"
        "Every individual that could be placed scores 10.\n"
        "Expected: little pressure beyond movement; a baseline run."
    ),
}


# ──────────────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────────────

def parse_args():
    p = argparse.ArgumentParser(description="Polyminis – Evolutionary Body-Plan Simulator")
    p.add_argument("--scenario",   default="nomad", choices=sorted(SCENARIOS),
                   help="Fitness evaluators to run with")
    p.add_argument("--run",        default=None,
                   help="JSON run file (overrides scenario/species/pop)")
    p.add_argument("--epochs",     type=int,   default=MAX_EPOCHS,
                   help="Number of epochs to run")
    p.add_argument("--species",    type=int,   default=1,
                   help="Number of random species")
    p.add_argument("--pop",        type=int,   default=POPULATION,
                   help="Individuals per species")
    p.add_argument("--steps",      type=int,   default=MAX_STEPS,
                   help="Ticks per epoch")
    p.add_argument("--restarts",   type=int,   default=RESTARTS,
                   help="Extra reruns of each epoch from fresh placements")
    p.add_argument("--genome_size", type=int,  default=GENOME_SIZE,
                   help="Genes per chromosome = max body segments")
    p.add_argument("--mutation",   type=float, default=MUTATION_RATE,
                   help="Mutation rate per bit")
    p.add_argument("--no_mutation", action="store_true",
                   help="Set mutation rate to 0 (demonstration)")
    p.add_argument("--heat",       action="store_true",
                   help="Place a heat source in the middle of the world")
    p.add_argument("--max_seconds", type=float, default=None,
                   help="Wall-clock budget per epoch")
    p.add_argument("--seed",       type=int,   default=None,
                   help="Random seed for diversity sampling")
    p.add_argument("--outdir",     default=SAVE_DIR,
                   help="Output directory")
    p.add_argument("--snapshot_interval", type=int, default=SNAPSHOT_INTERVAL,
                   help="Save world snapshot every N epochs")
    p.add_argument("--log-level",  default=LOG_LEVEL,
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Logging level")
    return p.parse_args()


# ──────────────────────────────────────────────────────────────────────────────
# Callbacks
# ──────────────────────────────────────────────────────────────────────────────

class SimCallbacks:
    """Bundles the per-epoch callbacks used by the simulation."""

    def __init__(self, outdir: str, snapshot_interval: int, all_stats: list):
        self.outdir            = outdir
        self.snapshot_interval = snapshot_interval
        self.all_stats         = all_stats

    def on_epoch(self, epoch_num, stats, epoch):
        self.all_stats.append(stats)
        print_stats(epoch_num, stats)

        # CSV log
        append_csv(stats, self.outdir)

        # Save snapshot
        if epoch_num % self.snapshot_interval == 0:
            path = save_world_snapshot(epoch, epoch_num, self.outdir)
            print(f"  → Snapshot: {path}")

            # Body of the best individual of each species
            for species in epoch.species:
                if not len(species):
                    continue
                label = species.name.replace(" ", "_")
                mpath = save_morphology_diagram(species.get_best(), epoch_num,
                                                label, self.outdir)
                if mpath:
                    print(f"  → Morphology: {mpath}")

        # Chart update every 100 epochs
        if epoch_num % 100 == 0 and epoch_num > 0:
            save_evolution_chart(self.all_stats, self.outdir)


def print_stats(epoch_num: int, stats: dict):
    if epoch_num % 10 == 0 or epoch_num < 5:
        print(
            f"Epoch {epoch_num:>5}  |  "
            f"alive {stats['alive']:>4}/{stats['population']:<4}  |  "
            f"best {stats['best_fitness']:>8.2f}  "
            f"mean {stats['mean_fitness']:>8.2f}  |  "
            f"diversity {stats['diversity']:.3f}  |  "
            f"{stats['elapsed_s']:.2f}s"
        )


# ──────────────────────────────────────────────────────────────────────────────
# Main
# ──────────────────────────────────────────────────────────────────────────────

def build_simulation(args) -> Simulation:
    if args.run:
        return Simulation.from_json_file(args.run)

    evaluators, _ = SCENARIOS[args.scenario]
    ga_config = GAConfig(population_size=args.pop,
                         genome_size=args.genome_size,
                         mutation_rate=0.0 if args.no_mutation else args.mutation,
                         fitness_evaluators=parse_evaluators(evaluators))
    environment = Environment(species_slots=max(SPECIES_SLOTS, args.species))
    if args.heat:
        environment.add_object(WorldObject.new_heat_source(
            (environment.width / 2, environment.height / 2), temperature=1.0))
    return Simulation.new_random(args.species, ga_config, environment,
                                 args.steps, args.restarts, seed=args.seed)


def main():
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    name = os.path.splitext(os.path.basename(args.run))[0] if args.run else args.scenario
    outdir = os.path.join(args.outdir, name)
    ensure_dirs(outdir)

    print("=" * 60)
    print("  Polyminis – Evolutionary Body-Plan Simulator")
    print("=" * 60)
    if args.run:
        print(f"  Run file   : {args.run}")
    else:
        print(f"  Scenario   : {args.scenario}")
        print(f"  Description: {SCENARIOS[args.scenario][1]}")
        print(f"  Species    : {args.species}")
        print(f"  Population : {args.pop}")
        print(f"  Genome size: {args.genome_size} genes")
        print(f"  Mutation   : {0.0 if args.no_mutation else args.mutation}")
    print(f"  Epochs     : {args.epochs}")
    print(f"  Output dir : {outdir}")
    print("=" * 60)

    try:
        sim = build_simulation(args)
    except PolyminiError as exc:
        print(f"  !! Cannot start: {exc}")
        raise SystemExit(1)

    all_stats = []
    cb = SimCallbacks(outdir, args.snapshot_interval, all_stats)
    sim.on_epoch_callback = cb.on_epoch

    sim.run(args.epochs, args.max_seconds)

    # Final chart
    print("\nSaving final evolution chart …")
    chart_path = save_evolution_chart(all_stats, outdir, "evolution_final.png")
    print(f"  → {chart_path}")

    # Final world snapshot
    snap = save_world_snapshot(sim.current_epoch, sim.epoch_num, outdir)
    print(f"  → Final snapshot: {snap}")

    print("\nDone! All outputs saved to:", outdir)


if __name__ == "__main__":
    main()
