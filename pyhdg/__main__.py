"""Command line entry point: ``python -m pyhdg``."""
import argparse
import logging

from pyhdg.config import HDGParameters, LinearSolverParameters, RefinementParameters
from pyhdg.driver import run_cycles
from pyhdg.utils.manufactured import gaussian_problem


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pyhdg",
                                description="Hybridised convection-diffusion solver on [-1,1]^2.")
    p.add_argument("--degree", type=int, default=1)
    p.add_argument("--cycles", type=int, default=4)
    p.add_argument("--mode", choices=("global", "adaptive"), default="global")
    p.add_argument("--tau", type=float, default=5.0, help="diffusive part of the stabilisation")
    p.add_argument("--workers", type=int, default=1)
    p.add_argument("--solver", choices=("gmres", "direct"), default="gmres")
    p.add_argument("--preconditioner", choices=("none", "ilu"), default="none")
    p.add_argument("--no-convection", action="store_true")
    p.add_argument("--conforming", action="store_true",
                   help="adaptive mode: propagate splits instead of leaving hanging nodes")
    p.add_argument("--output-dir", default=None, help="write VTK files per cycle")
    p.add_argument("--plot", default=None, help="save a convergence plot to this file")
    p.add_argument("--log-level", default="INFO",
                   choices=("DEBUG", "INFO", "WARNING", "ERROR"))
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    pde = gaussian_problem((0, 0)) if args.no_convection else gaussian_problem()
    table = run_cycles(
        pde,
        HDGParameters(degree=args.degree, tau_diffusion=args.tau, n_workers=args.workers),
        LinearSolverParameters(method=args.solver, preconditioner=args.preconditioner),
        RefinementParameters(mode=args.mode, n_cycles=args.cycles, conforming=args.conforming),
        output_dir=args.output_dir,
    )
    print(table.to_string())
    if args.plot:
        import matplotlib
        matplotlib.use("Agg")
        from pyhdg.io.visualization import plot_convergence
        ax = plot_convergence(table.frame, show=False)
        ax.figure.savefig(args.plot, dpi=150)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
