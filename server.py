"""
Polyminis Server  –  Flask + Server-Sent Events
===============================================

Endpoints:
  POST /start        Start (or restart) the simulation with a JSON config body
  POST /stop         Stop the running simulation
  POST /step         Run exactly one epoch (when no simulation is running)
  GET  /stream       SSE stream – browser subscribes here for live data
  GET  /status       Current sim state as JSON
  GET  /epoch        Dynamic snapshot of the current epoch

Run:
  python server.py
  # → http://localhost:5000
"""

import json
import logging
import queue
import threading

from flask import Flask, Response, request, jsonify

from config import (
    POPULATION, MAX_EPOCHS, MAX_STEPS, RESTARTS,
    GENOME_SIZE, MUTATION_RATE, FITNESS_EVALUATORS,
    WORLD_WIDTH, WORLD_HEIGHT,
)
from environment import Environment
from exceptions import PolyminiError
from genetics import GAConfig, parse_evaluators
from serialization import SerializationFlags
from simulation import Simulation

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────────────
app = Flask(__name__)

# Global simulation state
_sim:         Simulation | None = None
_sim_thread:  threading.Thread | None = None
_stop_event   = threading.Event()
_epoch_queue  = queue.Queue(maxsize=200)   # holds dicts to stream
_sim_status   = {
    "running":   False,
    "epoch":     0,
    "max_epoch": 0,
    "cfg":       {},
}
_status_lock  = threading.Lock()
_latest_epoch = {}                         # last dynamic snapshot, read by /epoch


# ──────────────────────────────────────────────────────────────────────────────
# CORS helper – allow a browser front-end on any origin to call us
# ──────────────────────────────────────────────────────────────────────────────

@app.after_request
def add_cors(response):
    response.headers["Access-Control-Allow-Origin"]  = "*"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    return response

@app.route("/", methods=["OPTIONS"])
@app.route("/<path:p>", methods=["OPTIONS"])
def preflight(p=""):
    return Response(status=200)


# ──────────────────────────────────────────────────────────────────────────────
# Simulation setup
# ──────────────────────────────────────────────────────────────────────────────

def _build_cfg(data: dict) -> dict:
    """Merge request JSON with defaults."""
    return {
        "world_width":  float(data.get("worldWidth",   WORLD_WIDTH)),
        "world_height": float(data.get("worldHeight",  WORLD_HEIGHT)),
        "species":      int(data.get("species",        1)),
        "population":   int(data.get("population",     POPULATION)),
        "max_epochs":   int(data.get("maxEpochs",      MAX_EPOCHS)),
        "max_steps":    int(data.get("maxSteps",       MAX_STEPS)),
        "restarts":     int(data.get("restarts",       RESTARTS)),
        "genome_size":  int(data.get("genomeSize",     GENOME_SIZE)),
        "mutation_rate": float(data.get("mutationRate", MUTATION_RATE)),
        "evaluators":   list(data.get("evaluators",    FITNESS_EVALUATORS)),
        "seed":         data.get("seed"),
    }


def _build_simulation(cfg: dict) -> Simulation:
    ga_config = GAConfig(population_size=cfg["population"],
                         genome_size=cfg["genome_size"],
                         mutation_rate=cfg["mutation_rate"],
                         fitness_evaluators=parse_evaluators(cfg["evaluators"]))
    environment = Environment(species_slots=max(1, cfg["species"]),
                              dimensions=(cfg["world_width"], cfg["world_height"]))
    return Simulation.new_random(cfg["species"], ga_config, environment,
                                 cfg["max_steps"], cfg["restarts"], seed=cfg["seed"])


def _epoch_payload(epoch_num: int, stats: dict, epoch, max_epoch: int) -> dict:
    """Compact per-epoch frame: stats plus every body's cells."""
    world = epoch.environment.physics_world
    bodies = [
        {"id": ind.uid, "species": s_idx,
         "cells": [list(c) for c in world.occupied_cells(ind.uid)]}
        for s_idx, s in enumerate(epoch.species)
        for ind in s.individuals
        if ind.alive and ind.uid in world
    ]
    best = {}
    for s in epoch.species:
        if len(s):
            ind = s.get_best()
            best[s.name] = {"fitness": round(ind.fitness, 4),
                            "chromosome": [int(g) for g in ind.morphology.chromosome]}
    return {
        "type":        "epoch",
        "epoch":       epoch_num,
        "maxEpoch":    max_epoch,
        "alive":       stats["alive"],
        "population":  stats["population"],
        "bestFitness": round(stats["best_fitness"], 4),
        "meanFitness": round(stats["mean_fitness"], 4),
        "diversity":   round(stats["diversity"], 4),
        "bodies":      bodies,
        "best":        best,
    }


def _publish(payload: dict, out_q: queue.Queue):
    # Non-blocking put; drop oldest frame if queue full
    if out_q.full():
        try:
            out_q.get_nowait()
        except queue.Empty:
            pass
    out_q.put(payload)


def _snapshot(sim: Simulation):
    global _latest_epoch
    _latest_epoch = sim.to_dict(SerializationFlags.DYNAMIC)


def _run_one_epoch(sim: Simulation, max_epoch: int, out_q: queue.Queue) -> dict:
    # The frame is built in the epoch callback, before advance() moves the
    # species out of the finished epoch
    def publish(epoch_num, stats, finished):
        _publish(_epoch_payload(epoch_num, stats, finished, max_epoch), out_q)

    sim.on_epoch_callback = publish
    sim.run_epoch()
    stats = sim.advance_epoch()
    with _status_lock:
        _sim_status["epoch"] = sim.epoch_num
    _snapshot(sim)
    return stats


def _sim_worker(sim: Simulation, max_epochs: int, stop_evt: threading.Event,
                out_q: queue.Queue):
    """Run epochs in a background thread; stop_evt is checked between epochs."""
    with _status_lock:
        _sim_status["running"] = True
    try:
        for _ in range(max_epochs):
            if stop_evt.is_set():
                break
            _run_one_epoch(sim, max_epochs, out_q)
    except PolyminiError:
        logger.exception("Simulation stopped on an invariant violation")
        raise
    finally:
        with _status_lock:
            _sim_status["running"] = False
            last_epoch = _sim_status["epoch"]
        out_q.put({"type": "done", "epoch": last_epoch})


# ──────────────────────────────────────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────────────────────────────────────

@app.route("/start", methods=["POST"])
def start():
    global _sim, _sim_thread, _stop_event, _epoch_queue

    # Only one worker at a time
    _stop_event.set()
    if _sim_thread and _sim_thread.is_alive():
        _sim_thread.join(timeout=3)

    # Reset
    _stop_event  = threading.Event()
    _epoch_queue = queue.Queue(maxsize=200)
    cfg = _build_cfg(request.get_json(force=True, silent=True) or {})
    with _status_lock:
        _sim_status["epoch"]     = 0
        _sim_status["running"]   = False
        _sim_status["cfg"]       = cfg
        _sim_status["max_epoch"] = cfg["max_epochs"]

    _sim = _build_simulation(cfg)
    _snapshot(_sim)
    _sim_thread = threading.Thread(
        target=_sim_worker,
        args=(_sim, cfg["max_epochs"], _stop_event, _epoch_queue),
        daemon=True,
    )
    _sim_thread.start()
    return jsonify({"status": "started", "cfg": cfg})


@app.route("/stop", methods=["POST"])
def stop():
    _stop_event.set()
    return jsonify({"status": "stopped"})


@app.route("/step", methods=["POST"])
def step_one():
    """Run exactly one epoch (convenience for manual stepping)."""
    global _sim
    if _sim_thread and _sim_thread.is_alive():
        return jsonify({"status": "busy",
                        "hint": "POST /stop before stepping manually"}), 409
    if _sim is None:
        cfg = _build_cfg(request.get_json(force=True, silent=True) or {})
        with _status_lock:
            _sim_status["cfg"] = cfg
            _sim_status["max_epoch"] = cfg["max_epochs"]
        _sim = _build_simulation(cfg)
    with _status_lock:
        max_epoch = _sim_status["max_epoch"]
    stats = _run_one_epoch(_sim, max_epoch, _epoch_queue)
    return jsonify({"status": "stepped", "epoch": _sim.epoch_num,
                    "stats": {k: v for k, v in stats.items() if k != "species"}})


@app.route("/status", methods=["GET"])
def status():
    with _status_lock:
        return jsonify(dict(_sim_status))


@app.route("/epoch", methods=["GET"])
def epoch():
    return jsonify(_latest_epoch)


@app.route("/stream", methods=["GET"])
def stream():
    """SSE endpoint – browser subscribes and receives each epoch as an event."""

    def event_gen():
        # Handshake frame before the first epoch
        yield "data: {\"type\": \"connected\"}\n\n"

        while True:
            try:
                payload = _epoch_queue.get(timeout=1)
                yield f"data: {json.dumps(payload)}\n\n"
                if payload.get("type") == "done":
                    break
            except queue.Empty:
                # Keep-alive ping
                yield "data: {\"type\": \"ping\"}\n\n"

    return Response(
        event_gen(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",    # disable nginx buffering if behind proxy
        },
    )


# ──────────────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("=" * 50)
    print("  Polyminis Server  →  http://localhost:5000")
    print("  SSE stream        →  http://localhost:5000/stream")
    print("=" * 50)
    app.run(host="0.0.0.0", port=5000, threaded=True, debug=False)
