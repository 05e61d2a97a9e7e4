"""
Main entry point for the WW / WZ / ZZ cross-section analysis.

Reads truth-level ntuples, builds dressed leptons, classifies every
event as a WW, WZ or ZZ candidate and fills the three cross-section
accumulators, which are normalised to the sample cross section once
all files have been merged.

Supports serial execution and local parallelism via a Dask cluster.
"""

import argparse
import glob
import logging
import os
import time
import multiprocessing

import yaml
import numpy as np
import matplotlib.pyplot as plt

from src.diboson.analysis import DibosonAnalysis
from src.diboson.io import DEFAULT_BRANCHES, DEFAULT_TREE, load_events
from src.diboson.leptons import (
    DRESSING_CONE,
    dress_leptons,
    select_prompt_leptons,
    select_prompt_photons,
)
from src.diboson.selection import Process

logger = logging.getLogger("run_analysis")


# Argument parsing and config loading
def parse_args():
    parser = argparse.ArgumentParser(
        description="WW/WZ/ZZ normalised cross sections at 5.02 TeV."
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--n-workers",
        type=int,
        default=None,
        help="Number of Dask workers for parallel file processing "
        "(overrides n_workers in the config).",
    )
    return parser.parse_args()


def load_config(path):
    with open(path) as f:
        return yaml.safe_load(f)


# Per-file analysis
def process_file(filename, config):
    """
    Per-file diboson analysis.

    Steps:
      1. Load lepton, photon and weight branches.
      2. Select prompt leptons and photons.
      3. Dress leptons with photons inside the clustering cone.
      4. Classify events and fill the WW/WZ/ZZ accumulators.

    The returned analysis is not finalised: partial results are
    merged across files before normalisation.
    """
    input_cfg = config.get("input", {})
    scale = input_cfg.get("momentum_scale", 1.0)
    weight_branch = input_cfg.get("weight_branch")

    branches = [b for b in DEFAULT_BRANCHES if b != "mcWeight"]
    if weight_branch:
        branches.append(weight_branch)

    # 1) Load events
    arrays = load_events(
        filename,
        branches=branches,
        treename=input_cfg.get("tree", DEFAULT_TREE),
    )

    # 2) + 3) Dressed leptons
    leptons = select_prompt_leptons(arrays, momentum_scale=scale)
    photons = select_prompt_photons(arrays, momentum_scale=scale)
    dressed = dress_leptons(
        leptons,
        photons,
        dr_max=config.get("dressing", {}).get("dr_max", DRESSING_CONE),
    )

    # 4) Classification
    weights = np.asarray(arrays[weight_branch], dtype=float) if weight_branch else None

    analysis = DibosonAnalysis.from_config(config)
    analysis.init()
    categories = analysis.analyze(dressed, weights)

    info = {"filename": filename, "n_events": len(arrays)}
    for process in (Process.WW, Process.WZ, Process.ZZ):
        info[f"n_{process.name}"] = int(np.count_nonzero(categories == process))

    return analysis, info


def safe_process_file(fname, config):
    """
    Wrapper so that a bad file doesn't kill the whole job.
    """
    try:
        return process_file(fname, config)
    except Exception as e:
        logger.warning("Error in file %s: %s", fname, e)
        return None


def run_files(files, config, n_workers):
    """Process all files, serially or on a local Dask cluster."""
    if n_workers == 1:
        outputs = []
        for i, fname in enumerate(files, start=1):
            outputs.append(safe_process_file(fname, config))
            logger.info("[%d/%d] Completed %s", i, len(files), fname)
        return outputs

    from src.distributed.executor import local_client, run_on_client

    with local_client(n_workers=n_workers) as client:
        return run_on_client(client, files, safe_process_file, config)


def plot_cross_sections(results, sqrt_s, outdir):
    names = list(results)
    values = np.array([results[name]["value"] for name in names])
    errors = np.sqrt([results[name]["variance"] for name in names])

    fig, ax = plt.subplots()
    ax.errorbar(range(len(names)), values, yerr=errors, fmt="o", label="Simulation")
    ax.set_xticks(range(len(names)))
    ax.set_xticklabels(names)
    ax.set_yscale("log")
    ax.set_ylabel(r"$\sigma$ [pb]")
    ax.set_title(rf"Diboson cross sections, $\sqrt{{s}}$ = {sqrt_s:.2f} TeV")
    ax.legend(loc="best", frameon=False)
    fig.tight_layout()
    fig.savefig(os.path.join(outdir, "cross_sections.png"))
    plt.close(fig)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = parse_args()
    config = load_config(args.config)

    pattern = os.path.join(config["data_dir"], config["file_pattern"])
    files = sorted(glob.glob(pattern))

    if not files:
        raise RuntimeError(f"No input files found for pattern {pattern}")

    print(f"Found {len(files)} input files.")

    n_workers = args.n_workers if args.n_workers is not None else config.get("n_workers", 1)
    max_procs = multiprocessing.cpu_count() or 1
    if n_workers > max_procs:
        logger.info(
            "Requested %d workers but only %d cores available; using %d.",
            n_workers,
            max_procs,
            max_procs,
        )
        n_workers = max_procs

    start_time = time.perf_counter()
    outputs = [out for out in run_files(files, config, n_workers) if out is not None]
    wall_time = time.perf_counter() - start_time

    if not outputs:
        raise RuntimeError("No successful per-file results; nothing to merge.")

    analyses, infos = zip(*outputs)

    # Merge partial runs, then normalise once
    total = analyses[0]
    for partial in analyses[1:]:
        total.merge(partial)
    total.finalize()
    results = total.results()

    outdir = config["output_dir"]
    os.makedirs(outdir, exist_ok=True)

    np.save(
        os.path.join(outdir, "xsec_values.npy"),
        np.array([results[name]["value"] for name in results]),
    )
    np.save(
        os.path.join(outdir, "xsec_variances.npy"),
        np.array([results[name]["variance"] for name in results]),
    )

    if config.get("analysis", {}).get("make_plots", True):
        plot_cross_sections(results, total.sqrt_s, outdir)

    total_events = sum(info["n_events"] for info in infos)

    # Final summary
    print(f"Processed {len(outputs)} files, {total_events} events.")
    print(f"Sum of weights: {total.sum_of_weights:g}, normalisation: {total.norm:g}")
    for stage, value in total.cutflow.items():
        print(f"  cutflow {stage:>14}: {value:g}")
    for name, res in results.items():
        print(
            f"sigma({name}) [{res['reference_id']}] = "
            f"{res['value']:.4g} +- {np.sqrt(res['variance']):.2g} pb"
        )
    print(f"Total wall time: {wall_time:.2f} s")
    print(f"Saved outputs to {outdir}")


if __name__ == "__main__":
    main()
