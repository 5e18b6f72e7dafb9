"""
Command line front end: render score fields, run the Langevin sampler headless,
and convert trained score net checkpoints into JSON weight tables.

    scorefield field --kind ring --sigma 0.5 --error density --severity 0.05
    scorefield sample --kind swiss_roll --steps 1000 --count 300
    scorefield export-weights ckpt.pth --kind ring --regime naive
"""
import argparse
import os
from os.path import join
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from scorefield.analytic_score import SIGMA_RANGE
from scorefield.distributions import DistributionKind
from scorefield.langevin_sampler import LangevinSampler, SAMPLE_COUNT_RANGE, STEP_SIZE_RANGE
from scorefield.plot_utils import plot_score_field, saveallforms, visualize_samples
from scorefield.score_error import ErrorKind, ErrorSpec
from scorefield.score_MLP import (ScoreRegime, configure_weights_dir, export_mlp_weights,
                                  get_estimator, load_checkpoint_weights, weight_table_path)

KIND_CHOICES = [kind.slug for kind in DistributionKind]
ERROR_CHOICES = [kind.value for kind in ErrorKind]


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(description="Score field and Langevin sampling visualizer.")
    parser.add_argument("--weights_dir", "--weights-dir", type=str, default=None,
                        help="Directory of pretrained score net weight tables")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_field_args(sub):
        sub.add_argument("--kind", type=str, default="gaussian", choices=KIND_CHOICES, help="Target distribution")
        sub.add_argument("--sigma", type=float, default=0.0,
                         help=f"Noise level of the perturbed density, UI range {SIGMA_RANGE}")
        sub.add_argument("--error", type=str, default="none", choices=ERROR_CHOICES, help="Score error model")
        sub.add_argument("--severity", type=float, default=0.001, help="Severity of the synthetic error")
        sub.add_argument("--outdir", type=str, default="figures", help="Where figures and stats are saved")

    field_parser = subparsers.add_parser("field", help="Plot density contours and the score field")
    add_field_args(field_parser)
    field_parser.add_argument("--volatile", action="store_true", help="Redraw the error noise (default stable)")
    field_parser.add_argument("--white_noise", "--white-noise", action="store_true",
                              help="Uncorrelated instead of smooth stable noise")
    field_parser.add_argument("--normalize", action="store_true", help="Plot unit length arrows")

    sample_parser = subparsers.add_parser("sample", help="Run Langevin dynamics on a particle ensemble")
    add_field_args(sample_parser)
    sample_parser.add_argument("--steps", type=int, default=1000, help="Number of Langevin steps")
    sample_parser.add_argument("--count", type=int, default=200,
                               help=f"Number of particles, UI range {SAMPLE_COUNT_RANGE}")
    sample_parser.add_argument("--step_size", "--step-size", type=float, default=0.05,
                               help=f"Langevin step size epsilon, UI range {STEP_SIZE_RANGE}")
    sample_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    sample_parser.add_argument("--record_every", "--record-every", type=int, default=10,
                               help="Record ensemble statistics every n steps")

    export_parser = subparsers.add_parser("export-weights", help="Convert a ScoreMLP checkpoint to a JSON weight table")
    export_parser.add_argument("checkpoint", type=str, help="torch.save'd ScoreMLP state_dict")
    export_parser.add_argument("--kind", type=str, required=True, choices=KIND_CHOICES)
    export_parser.add_argument("--regime", type=str, default=ScoreRegime.NOISE_AUGMENTED.value,
                               choices=[regime.value for regime in ScoreRegime])
    return parser.parse_args(argv)


def error_spec_from_args(args, deterministic=True, smooth=True):
    return ErrorSpec(kind=ErrorKind(args.error), severity=args.severity,
                     deterministic=deterministic, smooth=smooth)


def ensemble_stats(sampler):
    particles = sampler.particles
    radius = np.linalg.norm(particles, axis=1)
    return {"step": sampler.step_count,
            "mean_x": particles[:, 0].mean(), "mean_y": particles[:, 1].mean(),
            "std_x": particles[:, 0].std(), "std_y": particles[:, 1].std(),
            "mean_radius": radius.mean()}


def run_field(args):
    kind = DistributionKind.parse(args.kind)
    error_spec = error_spec_from_args(args, deterministic=not args.volatile, smooth=not args.white_noise)
    figh = plot_score_field(kind, args.sigma, error_spec, normalize_arrows=args.normalize)
    paths = saveallforms(args.outdir, f"{kind.slug}_score_field_sigma{args.sigma:.2f}_{error_spec.kind.value}", figh)
    plt.close(figh)
    print("Saved", *paths)
    return paths


def run_sample(args):
    kind = DistributionKind.parse(args.kind)
    error_spec = error_spec_from_args(args)
    sampler = LangevinSampler(kind, sigma=args.sigma, error_spec=error_spec,
                              step_size=args.step_size, count=args.count, seed=args.seed)
    sampler.initialize()
    stats_col = [ensemble_stats(sampler)]
    sampler.run(args.steps, callback_func=lambda smp: stats_col.append(ensemble_stats(smp)),
                callback_every=args.record_every)
    stats = ensemble_stats(sampler)
    print(f"{kind.value}: {stats['step']} steps, {sampler.particles.shape[0]} particles, "
          f"mean ({stats['mean_x']:.3f}, {stats['mean_y']:.3f}) mean radius {stats['mean_radius']:.3f}")
    os.makedirs(args.outdir, exist_ok=True)
    stats_df = pd.DataFrame(stats_col)
    csv_path = join(args.outdir, f"{kind.slug}_sampler_stats.csv")
    stats_df.to_csv(csv_path, index=False)
    figh = visualize_samples(sampler.particles, kind, args.sigma,
                             explabel=f"{kind.value} sigma={args.sigma} eps={args.step_size} "
                                      f"error={error_spec.kind.value} after {sampler.step_count} steps")
    saveallforms(args.outdir, f"{kind.slug}_langevin_samples_step{sampler.step_count:04d}", figh)
    plt.close(figh)
    return stats_df


def run_export(args):
    kind = DistributionKind.parse(args.kind)
    regime = ScoreRegime(args.regime)
    path = weight_table_path(get_estimator().weights_dir, kind, regime)
    export_mlp_weights(load_checkpoint_weights(args.checkpoint), path)
    print(f"Exported {args.checkpoint} -> {path}")
    return path


def main(argv=None):
    args = parse_arguments(argv)
    plt.switch_backend("Agg")
    if args.weights_dir is not None:
        configure_weights_dir(args.weights_dir)
    if args.command == "field":
        run_field(args)
    elif args.command == "sample":
        run_sample(args)
    elif args.command == "export-weights":
        run_export(args)


if __name__ == "__main__":
    main()
