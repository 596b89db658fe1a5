"""MPC Control - Receding-Horizon Path Tracking for a Simulated Car

Computes, once per telemetry message, the steering and throttle that best track
a short sequence of reference waypoints over a fixed look-ahead horizon.

## Architecture Overview

Each control cycle runs a strictly downward pipeline:

### Stage 1: Coordinate Transform (transform.py)
Moves the world-frame waypoints into the vehicle frame, so the vehicle sits at
the origin with zero heading.

### Stage 2: Reference Fit (reference.py)
Fits a cubic y = f(x) to the waypoints by QR least squares. ``polyeval`` and
``polyderiv`` are the only evaluation of f and f' used anywhere.

### Stage 3: Initial State (estimator.py)
Cross-track error f(0) and heading error -atan(f'(0)).

### Stage 4: Problem (problem.py, model.py)
Flat variable vector for N stages of (x, y, psi, v, cte, epsi) and N-1 stages
of (steering, acceleration); kinematic bicycle dynamics as equality
constraints; nine-term quadratic cost.

### Stage 5: Solve (solver.py)
IPOPT through casadi with a 0.5s wall-clock budget. Unconverged solves are
never trusted.

### Stage 6: Result (result.py)
Moving-average smoothing of the actuator sequences and re-integration of the
predicted trajectory.

## Modules

### Core Control Modules
- `config.py` - Centralized configuration parameters with documentation
- `transform.py` - World/vehicle frame transforms
- `reference.py` - Cubic reference fit and evaluation
- `model.py` - Kinematic bicycle model and variable layout
- `estimator.py` - Initial state from the fitted curve
- `problem.py` - Nonlinear program (cost, constraints, bounds)
- `solver.py` - IPOPT adapter
- `result.py` - Smoothing and command extraction
- `controller.py` - Per-cycle orchestration and input validation

### Communication & Data
- `server.py` - WebSocket server speaking the simulator's event framing
- `data_collector.py` - CSV logging of every control cycle

### Visualization
- `plot_styles.py` - Shared plotting utilities and color scheme
- `visualization.py` - Post-run plots
- `plot_results.py` - CLI for visualization tools

## Quick Start

```bash
python -m mpc_control            # listen on port 4567
python -m mpc_control --record . # also log cycles to results/
python -m mpc_control.plot_results --save
```
"""

__version__ = "0.1.0"

from .config import ControllerConfig, CostWeights
from .controller import Command, MPCController, Telemetry, TelemetryError
from .data_collector import DataCollector
from .problem import NumericError
from .reference import ReferenceFitError

__all__ = [
    "ControllerConfig",
    "CostWeights",
    "MPCController",
    "Telemetry",
    "Command",
    "TelemetryError",
    "ReferenceFitError",
    "NumericError",
    "DataCollector",
]
