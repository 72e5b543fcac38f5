"""
Neural Network for Polymini control units.

A small fully-connected feed-forward network:
  inputs (one per sensor) → hidden (tanh) → outputs (tanh, one per actuator)

The network shape follows the individual's body: gaining or losing a sensor or
actuator trait resizes the matching layer while keeping the weights the two
shapes share.
"""

import numpy as np

from config import WEIGHT_RANGE, WEIGHT_MUTATION


class NeuralNetwork:
    """
    Weights are stored per layer as (n_out, n_in) matrices with a bias vector.
    """

    def __init__(self, layer_sizes, rng=None, weights=None, biases=None):
        self.layer_sizes = [int(n) for n in layer_sizes]
        if weights is not None:
            self.weights = [np.asarray(w, dtype=np.float32) for w in weights]
            self.biases  = [np.asarray(b, dtype=np.float32) for b in biases]
        else:
            if rng is None:
                rng = np.random.default_rng()
            self.weights = []
            self.biases  = []
            for n_in, n_out in zip(self.layer_sizes[:-1], self.layer_sizes[1:]):
                self.weights.append(rng.uniform(-WEIGHT_RANGE, WEIGHT_RANGE,
                                                 size=(n_out, n_in)).astype(np.float32))
                self.biases.append(rng.uniform(-WEIGHT_RANGE, WEIGHT_RANGE,
                                                size=n_out).astype(np.float32))

    # ──────────────────────────────────────────────────────────────────────────

    @property
    def n_inputs(self) -> int:
        return self.layer_sizes[0]

    @property
    def n_outputs(self) -> int:
        return self.layer_sizes[-1]

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        """
        Run one forward pass.

        Args:
            inputs: float32 array of shape (n_inputs,), values −1..1

        Returns:
            float32 array of shape (n_outputs,), values −1..1
        """
        values = np.asarray(inputs, dtype=np.float32)
        for w, b in zip(self.weights, self.biases):
            values = np.tanh(w @ values + b)
        return values.copy()

    # ──────────────────────────────────────────────────────────────────────────
    # Genetics
    # ──────────────────────────────────────────────────────────────────────────

    def crossover(self, other, rng) -> "NeuralNetwork":
        """
        Uniform crossover: every weight is taken from either parent.
        Parents with different shapes yield a copy of `self`.
        """
        if self.layer_sizes != other.layer_sizes:
            return self.copy()
        weights, biases = [], []
        for wa, wb, ba, bb in zip(self.weights, other.weights, self.biases, other.biases):
            weights.append(np.where(rng.random(wa.shape) < 0.5, wa, wb))
            biases.append(np.where(rng.random(ba.shape) < 0.5, ba, bb))
        return NeuralNetwork(self.layer_sizes, weights=weights, biases=biases)

    def mutate(self, rng):
        """Nudge one weight or one bias of a random layer."""
        if not self.weights:
            return
        layer = int(rng.integers(0, len(self.weights)))
        if rng.random() < 0.5 and self.weights[layer].size:
            w = self.weights[layer]
            idx = np.unravel_index(int(rng.integers(0, w.size)), w.shape)
            w[idx] += rng.normal(0.0, WEIGHT_MUTATION)
        elif self.biases[layer].size:
            b = self.biases[layer]
            b[int(rng.integers(0, b.size))] += rng.normal(0.0, WEIGHT_MUTATION)

    def resized(self, n_inputs: int, n_outputs: int, rng) -> "NeuralNetwork":
        """Copy with new input/output sizes; shared weights are kept."""
        sizes = [n_inputs] + self.layer_sizes[1:-1] + [n_outputs]
        fresh = NeuralNetwork(sizes, rng)
        for w_new, w_old, b_new, b_old in zip(fresh.weights, self.weights,
                                              fresh.biases, self.biases):
            rows = min(w_new.shape[0], w_old.shape[0])
            cols = min(w_new.shape[1], w_old.shape[1])
            w_new[:rows, :cols] = w_old[:rows, :cols]
            b_new[:rows] = b_old[:rows]
        return fresh

    def copy(self) -> "NeuralNetwork":
        return NeuralNetwork(self.layer_sizes,
                             weights=[w.copy() for w in self.weights],
                             biases=[b.copy() for b in self.biases])

    # ──────────────────────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "Layers": list(self.layer_sizes),
            "Coefficients": [w.ravel().tolist() for w in self.weights],
            "Biases": [b.tolist() for b in self.biases],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NeuralNetwork":
        sizes = [int(n) for n in data["Layers"]]
        weights = [np.asarray(c, dtype=np.float32).reshape(n_out, n_in)
                   for c, n_in, n_out in zip(data["Coefficients"], sizes[:-1], sizes[1:])]
        biases = [np.asarray(b, dtype=np.float32) for b in data["Biases"]]
        return cls(sizes, weights=weights, biases=biases)
