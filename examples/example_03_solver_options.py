"""Example 3: Solver Options and Back Ends

This example demonstrates how to:
1. Load solver options from a YAML file
2. List the registered solver back ends
3. Use the PATH solver through Pyomo when it is installed
"""

import logging
from pathlib import Path

from complementarity import Model, list_solvers
from complementarity.backends import PYOMO_AVAILABLE, PathSolver

CONFIG = Path(__file__).parent / "config" / "newton.yaml"


def main():
    """Solve one model with several back ends."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 70)
    print("Example 3: Solver Options and Back Ends")
    print("=" * 70)

    print(f"\nRegistered solvers: {', '.join(list_solvers())}")

    model = Model(name="box")
    x = model.add_variable("x", upper=2.0, description="Bounded above")
    y = model.add_variable("y", lower=None, description="Free")
    model.complements(x - 5, x)
    model.complements(y**3 - 8, y)
    model.set_start_value(y, 1.0)
    model.load_options(CONFIG)
    print(f"Options from {CONFIG.name}: {model.options}")

    outcome = model.solve()
    print(f"\nnewton: {outcome}")
    print(f"  x = {model.get_value(x):.6f} (upper bound active)")
    print(f"  y = {model.get_value(y):.6f}")

    if PYOMO_AVAILABLE and PathSolver().available():
        outcome = model.solve(solver="path", options={"output": "no"})
        print(f"\npath: {outcome}")
    else:
        print("\nPATH solver not available, skipping")

    print("\n" + "=" * 70)
    print("Example completed successfully!")
    print("=" * 70)

    return model


if __name__ == "__main__":
    model = main()
