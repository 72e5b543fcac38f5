"""
Polyminis Configuration
All tunable parameters for the evolutionary body-plan simulation.

Values here are defaults; a JSON run file (see Simulation.from_dict) and the
CLI flags in main.py override them.
"""

# ─── World ────────────────────────────────────────────────────────────────────
WORLD_WIDTH   = 100.0   # physics/thermal world units east-west
WORLD_HEIGHT  = 100.0   # physics/thermal world units north-south
SPECIES_SLOTS = 2       # species an epoch accepts before it is full

# ─── Epoch ────────────────────────────────────────────────────────────────────
MAX_STEPS     = 100     # ticks per epoch
RESTARTS      = 0       # extra reruns of an epoch from fresh placements
MAX_EPOCHS    = 50      # epochs run by main.py

# ─── Population ───────────────────────────────────────────────────────────────
POPULATION          = 10    # individuals per species
PERCENTAGE_ELITISM  = 0.2   # share of best individuals carried over
PERCENTAGE_MUTATION = 0.1   # probability a child is mutated

# ─── Genome ───────────────────────────────────────────────────────────────────
# Each gene is a 32-bit int:
#   bits 31-24 control payload | bits 23-16 adjacency | bits 15-0 genetic
GENOME_SIZE    = 8       # genes (= max body segments)
MUTATION_RATE  = 0.01    # probability a single bit flips when mutating

ADJ_UP    = 0x01
ADJ_DOWN  = 0x02
ADJ_LEFT  = 0x04
ADJ_RIGHT = 0x08

# ─── Control ──────────────────────────────────────────────────────────────────
HIDDEN_MIN      = 3      # hidden layer size is drawn from [HIDDEN_MIN, HIDDEN_MAX)
HIDDEN_MAX      = 7
WEIGHT_RANGE    = 0.5    # initial weights/biases drawn from ±WEIGHT_RANGE
WEIGHT_MUTATION = 0.25   # std-dev of the gaussian nudge applied on mutation

# Sensors every individual gets regardless of its body
DEFAULT_SENSORS = ["positionx", "positiony", "orientation", "lastmovesucceeded"]

# Master translation table: (tier, trait number) → trait name
MASTER_TRANSLATION_TABLE = {
    ("TierI", 1): "speedtrait",
    ("TierI", 2): "movehorizontal",
    ("TierI", 3): "movevertical",
    ("TierI", 4): "rotate",
    ("TierII", 1): "temperature",
    ("TierII", 2): "thermalregulation",
}

# ─── Physics / Thermal ────────────────────────────────────────────────────────
PLACEMENT_RETRIES   = 500    # displaced placement attempts before giving up
MOVE_PASSES         = 4      # move passes per tick; a body takes 1 + its speed traits of them
THERMAL_GRID_SIZE   = 10.0   # world units per thermal grid square
THERMAL_BASE_TEMP   = 0.5
THERMAL_RATE        = 0.25   # fraction of the gap closed each thermal step
THERMAL_ACTION_GAIN = 0.2    # scale applied to thermal regulation actions
THERMO_MIN          = 0.3    # default comfort range of an individual
THERMO_MAX          = 0.7

# ─── Evaluation ───────────────────────────────────────────────────────────────
# Built-in evaluators:
#   "overallmovement"   – nomadic, +0.5 per tick with a move
#   "distancetravelled" – nomadic, +2.5 per unit of displacement
#   "shape"             – hoarding, rewards bodies close to 10 segments
#   "alive"             – basic, 10 unless the individual died
#   "targetposition"    – basic, rewards ending close to a target point
FITNESS_EVALUATORS = ["overallmovement", "distancetravelled"]
INSTINCTS          = ["basic", "herding", "hoarding", "nomadic", "predatory"]

# ─── Output / Logging ─────────────────────────────────────────────────────────
SAVE_DIR            = "output"   # directory for charts, diagrams and CSV
SNAPSHOT_INTERVAL   = 10         # save morphology diagrams every N epochs
LOG_CSV             = True       # write per-epoch CSV log
LOG_LEVEL           = "WARNING"
