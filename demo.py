"""
Quick demo – runs 40 epochs of two nomadic species next to a heat source
and saves snapshots, body diagrams and charts without needing a display.
"""
from environment import Environment, WorldObject
from genetics import GAConfig, parse_evaluators
from simulation import Simulation
from visualizer import (ensure_dirs, save_world_snapshot,
                        save_evolution_chart, save_morphology_diagram, append_csv)

OUT = "output/demo"
ensure_dirs(OUT)

all_stats = []


def on_epoch(epoch_num, stats, epoch):
    all_stats.append(stats)
    append_csv(stats, OUT)
    if epoch_num % 10 == 0:
        print(f"  Saving snapshot epoch {epoch_num}...")
        save_world_snapshot(epoch, epoch_num, OUT)
        for species in epoch.species:
            save_morphology_diagram(species.get_best(), epoch_num,
                                    species.name.replace(" ", "_"), OUT)


environment = Environment(species_slots=2)
environment.add_object(WorldObject.new_heat_source((50.0, 50.0), temperature=1.0))

sim = Simulation.new_random(
    n_species   = 2,
    config      = GAConfig(population_size=20, genome_size=8, mutation_rate=0.02,
                           fitness_evaluators=parse_evaluators(
                               ["overallmovement", "distancetravelled", "alive"])),
    environment = environment,
    max_steps   = 100,
    restarts    = 1,
    seed        = 42,
)
sim.on_epoch_callback = on_epoch
sim.run(40)

save_evolution_chart(all_stats, OUT, "demo_chart.png")
print("\nAll outputs in:", OUT)
