"""Force-directed 2D layout for the rendering surface.

A small spring-electrical simulation on a fixed logical canvas:

  - Nodes start at random positions within the central 80% of the canvas.
  - Every pair closer than ``REPULSION_RADIUS`` pushes apart with
    magnitude ``100 / d**2``.
  - Every edge pulls its endpoints together with magnitude
    ``d * 0.01 * edge.value``.
  - Net forces are accumulated for all nodes, scaled by the damping
    factor, applied, and positions are clamped to a 50-unit margin.

Repulsion is all-pairs, O(V^2) per iteration. Above ``grid_threshold``
nodes the candidate pairs come from a uniform grid with cells as wide
as the repulsion radius, so only neighbouring cells are scanned. The
grid visits the same pairs in the same order as the all-pairs scan, so
both paths produce identical positions.

The simulation is a pure function of node ids and edges and shares no
state with the metrics pipeline.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from netflow.graph.models import FlowEdge, FlowNode

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 800.0
DEFAULT_HEIGHT = 600.0
DEFAULT_ITERATIONS = 50
INITIAL_SPREAD = 0.8
REPULSION_RADIUS = 100.0
REPULSION_CONSTANT = 100.0
ATTRACTION_CONSTANT = 0.01
DAMPING = 0.1
MARGIN = 50.0


@dataclass
class LayoutResult:
    """Positions by node id plus how the simulation ended."""

    positions: dict[str, tuple[float, float]] = field(default_factory=dict)
    iterations_run: int = 0
    timed_out: bool = False
    used_grid: bool = False

    def apply(self, nodes: Iterable[FlowNode]) -> None:
        """Copy positions onto nodes as ``x``/``y``."""
        for node in nodes:
            position = self.positions.get(node.id)
            if position is not None:
                node.x, node.y = position


class ForceLayout:
    """Iterative force-directed layout.

    Parameters
    ----------
    width, height:
        Logical canvas size. Both must exceed twice the margin.
    iterations:
        Fixed number of simulation steps. Default 50.
    seed:
        Seed for initial placement. ``None`` gives a different layout on
        every run.
    timeout_seconds:
        Wall-clock guard. When exceeded the simulation stops early and
        the last (clamped) positions are returned. ``None`` disables it.
    grid_threshold:
        Node count above which repulsion uses the spatial grid.
    """

    def __init__(
        self,
        width: float = DEFAULT_WIDTH,
        height: float = DEFAULT_HEIGHT,
        iterations: int = DEFAULT_ITERATIONS,
        seed: int | None = None,
        timeout_seconds: float | None = 5.0,
        grid_threshold: int = 200,
    ) -> None:
        if width <= 2 * MARGIN or height <= 2 * MARGIN:
            raise ValueError(
                f"Canvas {width}x{height} is too small for a {MARGIN:g}-unit margin"
            )
        self.width = width
        self.height = height
        self.iterations = iterations
        self.seed = seed
        self.timeout_seconds = timeout_seconds
        self.grid_threshold = grid_threshold

    def compute(
        self,
        node_ids: Sequence[str],
        edges: Sequence[FlowEdge],
    ) -> LayoutResult:
        """Run the simulation and return final positions."""
        n = len(node_ids)
        if n == 0:
            return LayoutResult()

        rng = random.Random(self.seed)
        index = {node_id: i for i, node_id in enumerate(node_ids)}
        xs = [0.0] * n
        ys = [0.0] * n
        cx, cy = self.width / 2, self.height / 2
        for i in range(n):
            xs[i] = self._clamp_x(cx + (rng.random() - 0.5) * self.width * INITIAL_SPREAD)
            ys[i] = self._clamp_y(cy + (rng.random() - 0.5) * self.height * INITIAL_SPREAD)

        springs = [
            (index[e.source], index[e.target], e.value)
            for e in edges
            if e.source in index and e.target in index
        ]
        use_grid = n > self.grid_threshold

        started = time.monotonic()
        result = LayoutResult(used_grid=use_grid)

        for step in range(self.iterations):
            if self.timeout_seconds is not None and time.monotonic() - started > self.timeout_seconds:
                logger.warning(
                    "Layout timed out after %d/%d iterations (%d nodes)",
                    step, self.iterations, n,
                )
                result.timed_out = True
                break

            fx = [0.0] * n
            fy = [0.0] * n

            pairs = self._grid_pairs(xs, ys) if use_grid else _all_pairs(n)
            for i, j in pairs:
                dx = xs[i] - xs[j]
                dy = ys[i] - ys[j]
                distance = math.sqrt(dx * dx + dy * dy)
                if 0 < distance < REPULSION_RADIUS:
                    force = REPULSION_CONSTANT / (distance * distance)
                    ux, uy = dx / distance, dy / distance
                    fx[i] += ux * force
                    fy[i] += uy * force
                    fx[j] -= ux * force
                    fy[j] -= uy * force

            for s, t, value in springs:
                dx = xs[t] - xs[s]
                dy = ys[t] - ys[s]
                distance = math.sqrt(dx * dx + dy * dy)
                if distance > 0:
                    force = distance * ATTRACTION_CONSTANT * value
                    ux, uy = dx / distance, dy / distance
                    fx[s] += ux * force
                    fy[s] += uy * force
                    fx[t] -= ux * force
                    fy[t] -= uy * force

            for i in range(n):
                xs[i] = self._clamp_x(xs[i] + fx[i] * DAMPING)
                ys[i] = self._clamp_y(ys[i] + fy[i] * DAMPING)

            result.iterations_run = step + 1

        result.positions = {node_id: (xs[i], ys[i]) for node_id, i in index.items()}
        return result

    def run(self, nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> LayoutResult:
        """Compute a layout and write ``x``/``y`` onto the nodes."""
        result = self.compute([node.id for node in nodes], edges)
        result.apply(nodes)
        return result

    # -- Helpers -------------------------------------------------------------

    def _clamp_x(self, x: float) -> float:
        return max(MARGIN, min(self.width - MARGIN, x))

    def _clamp_y(self, y: float) -> float:
        return max(MARGIN, min(self.height - MARGIN, y))

    @staticmethod
    def _grid_pairs(xs: list[float], ys: list[float]) -> list[tuple[int, int]]:
        """Pairs (i, j), i < j, in adjacent grid cells, in all-pairs order."""
        cells: dict[tuple[int, int], list[int]] = {}
        keys: list[tuple[int, int]] = []
        for i, (x, y) in enumerate(zip(xs, ys)):
            key = (int(x // REPULSION_RADIUS), int(y // REPULSION_RADIUS))
            keys.append(key)
            cells.setdefault(key, []).append(i)

        pairs: list[tuple[int, int]] = []
        for i, (gx, gy) in enumerate(keys):
            neighbours: list[int] = []
            for ox in (-1, 0, 1):
                for oy in (-1, 0, 1):
                    for j in cells.get((gx + ox, gy + oy), ()):
                        if j > i:
                            neighbours.append(j)
            neighbours.sort()
            pairs.extend((i, j) for j in neighbours)
        return pairs


def _all_pairs(n: int) -> Iterator[tuple[int, int]]:
    for i in range(n):
        for j in range(i + 1, n):
            yield i, j
