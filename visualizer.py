"""
Visualizer for Polyminis.

Produces:
  1. World snapshots     – every body's cells over the thermal grid
  2. Evolution chart     – best/mean fitness + diversity over epochs
  3. Morphology diagrams – the four rotations of an individual's body
  4. CSV log             – per-epoch stats
"""

import os
import csv
import matplotlib
matplotlib.use("Agg")          # non-interactive backend (no display needed)
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches

from config import SAVE_DIR, LOG_CSV
from traits import ActuatorTag, SensorTag

SPECIES_COLORS = ["#44FF44", "#4499FF", "#FF88AA", "#FFCC44", "#CC44FF", "#44FFEE"]


# ──────────────────────────────────────────────────────────────────────────────
# Directory setup
# ──────────────────────────────────────────────────────────────────────────────

def ensure_dirs(base: str = SAVE_DIR):
    for sub in ("snapshots", "charts", "morphology"):
        os.makedirs(os.path.join(base, sub), exist_ok=True)


def _dark_axes(ax, fig):
    ax.set_facecolor("#111111")
    fig.patch.set_facecolor("#111111")
    ax.tick_params(colors="white")
    for spine in ax.spines.values():
        spine.set_edgecolor("#444444")


# ──────────────────────────────────────────────────────────────────────────────
# World snapshot
# ──────────────────────────────────────────────────────────────────────────────

def save_world_snapshot(epoch, epoch_num: int, base: str = SAVE_DIR):
    """
    Render the epoch's world: the thermal grid as background, static objects
    in grey and every living body's cells in its species colour.
    """
    env = epoch.environment
    fig, ax = plt.subplots(figsize=(6, 6), dpi=100)
    _dark_axes(ax, fig)
    ax.set_xlim(-1, env.width)
    ax.set_ylim(env.height, -1)          # row 0 at the top
    ax.set_aspect("equal")

    grid = env.thermo_world.grid
    ax.imshow(grid.T, cmap="coolwarm", vmin=0.0, vmax=1.0, alpha=0.35,
              extent=(0, env.width, env.height, 0), zorder=0)

    world = env.physics_world
    for obj in env.objects:
        w, h = obj.dimensions
        ax.add_patch(mpatches.Rectangle(obj.position, w, h, facecolor="#888888",
                                        linewidth=0, zorder=1))

    alive, total = 0, 0
    for s_idx, species in enumerate(epoch.species):
        color = SPECIES_COLORS[s_idx % len(SPECIES_COLORS)]
        for ind in species.individuals:
            total += 1
            if not ind.alive or ind.uid not in world:
                continue
            alive += 1
            for x, y in world.occupied_cells(ind.uid):
                ax.add_patch(mpatches.Rectangle((x, y), 1, 1, facecolor=color,
                                                linewidth=0, zorder=2))

    ax.set_title(f"Epoch {epoch_num}  step {epoch.steps}  "
                 f"({alive}/{total} placed)", color="white", fontsize=10)

    path = os.path.join(base, "snapshots", f"epoch_{epoch_num:06d}.png")
    plt.savefig(path, dpi=100, bbox_inches="tight", facecolor=fig.get_facecolor())
    plt.close(fig)
    return path


# ──────────────────────────────────────────────────────────────────────────────
# Evolution statistics chart
# ──────────────────────────────────────────────────────────────────────────────

def save_evolution_chart(stats: list, base: str = SAVE_DIR,
                         filename: str = "evolution.png"):
    """
    Plot best and mean fitness (left axis) and genetic diversity (right axis)
    across all epochs.
    """
    if not stats:
        return
    epochs    = [s["epoch"]        for s in stats]
    best      = [s["best_fitness"] for s in stats]
    mean      = [s["mean_fitness"] for s in stats]
    diversity = [s["diversity"]    for s in stats]

    fig, ax1 = plt.subplots(figsize=(12, 5), dpi=100)
    _dark_axes(ax1, fig)

    ax1.plot(epochs, best, color="#44FF44", linewidth=1.2,
             label="Best fitness", zorder=3)
    ax1.plot(epochs, mean, color="#FF8800", linewidth=1.0,
             alpha=0.8, label="Mean fitness", zorder=2)
    ax1.set_ylabel("Fitness", color="white")
    ax1.set_xlabel("Epoch", color="white")

    ax2 = ax1.twinx()
    ax2.plot(epochs, diversity, color="#CC44FF", linewidth=1.0,
             linestyle="--", label="Diversity", zorder=2)
    ax2.set_ylabel("Genetic diversity (0–1)", color="white")
    ax2.set_ylim(0, 1.05)
    ax2.tick_params(colors="white")

    lines1, labels1 = ax1.get_legend_handles_labels()
    lines2, labels2 = ax2.get_legend_handles_labels()
    ax1.legend(lines1 + lines2, labels1 + labels2,
               facecolor="#222222", labelcolor="white",
               loc="lower right", fontsize=8)

    ax1.set_title("Evolutionary Progress", color="white", fontsize=12)
    plt.tight_layout()
    path = os.path.join(base, "charts", filename)
    plt.savefig(path, dpi=100, bbox_inches="tight",
                facecolor=fig.get_facecolor())
    plt.close(fig)
    return path


# ──────────────────────────────────────────────────────────────────────────────
# Morphology diagram
# ──────────────────────────────────────────────────────────────────────────────

def _segment_color(trait) -> str:
    if isinstance(trait, SensorTag):
        return "#4499FF"
    if isinstance(trait, ActuatorTag):
        return "#FF88AA"
    if trait is not None:
        return "#AAAAAA"
    return "#555555"


def save_morphology_diagram(individual, epoch_num: int, label: str = "",
                            base: str = SAVE_DIR):
    """
    Draw the individual's body in its four rotations side by side.
    Sensors are blue, actuators pink, simple traits grey; the origin
    segment is outlined in white.
    """
    morphology = individual.morphology
    if not len(morphology):
        return

    fig, axes = plt.subplots(1, 4, figsize=(12, 3.4), dpi=100)
    fig.patch.set_facecolor("#111111")
    for r, ax in enumerate(axes):
        _dark_axes(ax, fig)
        ax.set_aspect("equal")
        coords = morphology.positions(r)
        xs = [x for x, _ in coords]
        ys = [y for _, y in coords]
        ax.set_xlim(min(xs) - 1, max(xs) + 2)
        ax.set_ylim(max(ys) + 2, min(ys) - 1)
        for i, ((x, y), seg) in enumerate(zip(coords, morphology.segments)):
            edge = "white" if i == 0 else "#222222"
            ax.add_patch(mpatches.Rectangle((x, y), 1, 1,
                                            facecolor=_segment_color(seg.trait),
                                            edgecolor=edge, linewidth=1.0))
            if seg.trait is not None:
                ax.text(x + 0.5, y + 0.5, str(seg.trait)[:4], color="white",
                        fontsize=6, ha="center", va="center")
        w, h = morphology.rotated_dimensions(r)
        ax.set_title(f"{r * 90}°  {w}×{h}", color="white", fontsize=9)

    fig.suptitle(f"Epoch {epoch_num} — Body of {label}  ({len(morphology)} segments)",
                 color="white", fontsize=10)

    path = os.path.join(base, "morphology", f"epoch_{epoch_num:06d}_{label}.png")
    plt.savefig(path, dpi=100, bbox_inches="tight",
                facecolor=fig.get_facecolor())
    plt.close(fig)
    return path


# ──────────────────────────────────────────────────────────────────────────────
# CSV log
# ──────────────────────────────────────────────────────────────────────────────

def append_csv(stats: dict, base: str = SAVE_DIR):
    """Append one epoch's stats to a CSV file (per-species detail omitted)."""
    if not LOG_CSV:
        return
    row = {k: v for k, v in stats.items() if not isinstance(v, (list, dict))}
    path = os.path.join(base, "evolution_log.csv")
    file_exists = os.path.isfile(path)
    with open(path, "a", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(row.keys()))
        if not file_exists:
            writer.writeheader()
        writer.writerow(row)
    return path
