# src/pipeshaper/cli/__init__.py
from __future__ import annotations

import time
from contextlib import contextmanager

import click

from ..backends.ipfw import IpfwBackend
from ..config import ShaperCfg, load_env
from ..engine.reader import StateReader
from ..engine.reconciler import Reconciler
from ..errors import ShaperError
from ..inventory import load_shaping_csv
from ..logging import get_logger, setup_logging
from ..orchestrator import DirectionInput, get_pair, outcome_label, render_snapshot, run_batch, set_pair
from ..transports import make_runner


@contextmanager
def _backend(cfg: ShaperCfg):
    try:
        runner = make_runner(cfg)
    except RuntimeError as e:
        raise click.ClickException(str(e))
    try:
        yield IpfwBackend(runner, cfg)
    finally:
        runner.close()


def _setup(ctx: click.Context) -> ShaperCfg:
    opts = ctx.obj or {}
    setup_logging(
        level=opts.get("log_level", "INFO"),
        quiet=opts.get("quiet", False),
        log_file=opts.get("log_file"),
        use_tqdm_handler=True,
    )
    load_env(opts.get("env_file"))
    try:
        return ShaperCfg.from_env()
    except RuntimeError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("--env-file", default=None, help="Load settings from this .env file.")
@click.option("--log-file", default=None)
@click.option("--log-level", default="INFO",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]))
@click.option("--quiet", is_flag=True, help="Silence console logs.")
@click.pass_context
def cli(ctx: click.Context, env_file, log_file, log_level, quiet):
    """pipeshaper: per-address bandwidth, delay and loss shaping on ipfw/dummynet."""
    ctx.obj = {"env_file": env_file, "log_file": log_file, "log_level": log_level, "quiet": quiet}


# -----------------------------
# set
# -----------------------------
@cli.command("set")
@click.argument("address")
@click.option("--down-bw", default=None, help="Inbound bandwidth in bit/s (or unlimited, 768K, 2M).")
@click.option("--down-delay", default=None, help="Inbound added delay in ms.")
@click.option("--down-loss", default=None, help="Inbound packet loss rate, 0..1.")
@click.option("--up-bw", default=None, help="Outbound bandwidth in bit/s (or unlimited, 768K, 2M).")
@click.option("--up-delay", default=None, help="Outbound added delay in ms.")
@click.option("--up-loss", default=None, help="Outbound packet loss rate, 0..1.")
@click.pass_context
def set_cmd(ctx: click.Context, address, down_bw, down_delay, down_loss, up_bw, up_delay, up_loss):
    """
    Shape traffic to (down) and from (up) ADDRESS.

    ADDRESS is an IP address, a hardware address, or "any". Leaving every
    option out removes shaping for ADDRESS in both directions.
    """
    cfg = _setup(ctx)
    down = DirectionInput(down_bw, down_delay, down_loss)
    up = DirectionInput(up_bw, up_delay, up_loss)
    with _backend(cfg) as backend:
        try:
            res = set_pair(Reconciler(backend, cfg=cfg), address, down, up)
        except ShaperError as e:
            raise click.ClickException(str(e))
    click.echo(f"down: {outcome_label(res['down'])}")
    click.echo(f"up: {outcome_label(res['up'])}")


# -----------------------------
# get
# -----------------------------
@cli.command("get")
@click.argument("address")
@click.pass_context
def get_cmd(ctx: click.Context, address):
    """Show current shaping for ADDRESS."""
    cfg = _setup(ctx)
    with _backend(cfg) as backend:
        try:
            snaps = get_pair(StateReader(backend), address)
        except ShaperError as e:
            raise click.ClickException(str(e))
    click.echo(f"down: {render_snapshot(snaps['down'])}")
    click.echo(f"up: {render_snapshot(snaps['up'])}")


# -----------------------------
# batch
# -----------------------------
@cli.command("batch")
@click.option("-i", "--input", "input_path", required=True,
              help="CSV: Address,DownBandwidth,DownDelay,DownLoss,UpBandwidth,UpDelay,UpLoss")
@click.option("--report", "report_path", default=None, help="Write the per-address result table to this CSV.")
@click.option("--progress/--no-progress", default=True, show_default=True, help="Show a progress bar.")
@click.pass_context
def batch_cmd(ctx: click.Context, input_path, report_path, progress):
    """Apply a CSV of desired shaping, one address at a time."""
    cfg = _setup(ctx)
    log = get_logger()
    try:
        rows = load_shaping_csv(input_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))
    if not rows:
        log.warning(f"No rows in {input_path}")
        return

    start = time.time()
    with _backend(cfg) as backend:
        df = run_batch(rows, Reconciler(backend, cfg=cfg), show_progress=progress)

    if report_path:
        df.to_csv(report_path, index=False)
        log.info(f"Wrote {report_path}")
    else:
        click.echo(df.to_string(index=False))

    failed = int((df["Status"] != "OK").sum())
    m, s = divmod(time.time() - start, 60)
    log.info(f"Done in {int(m)}:{s:05.2f} min, {len(df) - failed} ok, {failed} failed")
    if failed:
        ctx.exit(1)


if __name__ == "__main__":
    cli()
