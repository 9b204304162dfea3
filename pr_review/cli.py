"""
命令行入口。

  pr-review review https://github.com/<owner>/<repo>/pull/<n> [--post-comment] [-o DIR] [--no-save]
  pr-review serve [--host 0.0.0.0] [--port 8000]

配置全部来自环境变量（见 `config.py`）；任何错误都以 `Error: ...` 输出并以退出码 1 结束。
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

import anyio
import click
import httpx
import uvicorn

from pr_review.config import AppConfig
from pr_review.config import load_config_from_env
from pr_review.github.schemas import PullRequestId
from pr_review.github.schemas import parse_pull_request_url
from pr_review.main import build_clients
from pr_review.review.runner import ReviewRun
from pr_review.review.runner import run_pull_request_review
from pr_review.review.synthesis import format_review_console
from pr_review.review.synthesis import format_review_markdown
from pr_review.review.synthesis import review_markdown_filename

logger = logging.getLogger(__name__)


async def _run_review(config: AppConfig, pr: PullRequestId, post_comment: bool, now: datetime) -> ReviewRun:
    async with httpx.AsyncClient(timeout=httpx.Timeout(60.0)) as http_client:
        github_client, orchestrator = build_clients(config=config, http_client=http_client)
        return await run_pull_request_review(
            github_client=github_client,
            orchestrator=orchestrator,
            pr=pr,
            post_comments=post_comment,
            now=now,
        )


def save_review(run: ReviewRun, output_dir: Path, now: datetime) -> Path:
    """把 Markdown 报告写到 output_dir（目录不存在则创建）。"""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / review_markdown_filename(pr=run.pr, generated_at=now)
    content = format_review_markdown(
        report=run.report,
        title=run.pull_request.title,
        url=run.pull_request.html_url,
        unpostable=run.unpostable,
        generated_at=now,
    )
    path.write_text(content, encoding="utf-8")
    return path


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log pipeline progress to stderr.")
def cli(verbose: bool) -> None:
    """AI-powered GitHub pull request review bot."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("pr_url")
@click.option("--post-comment", is_flag=True, help="Post the review back to the pull request.")
@click.option(
    "-o",
    "--output",
    default="./reviews",
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for saved Markdown reviews.",
)
@click.option("--save/--no-save", default=True, help="Save the review as a Markdown file.")
def review(pr_url: str, post_comment: bool, output: Path, save: bool) -> None:
    """Review a GitHub pull request, e.g. https://github.com/owner/repo/pull/123."""
    try:
        config = load_config_from_env(os.environ)
        pr = parse_pull_request_url(pr_url)
        click.echo(f"Reviewing PR #{pr.number} in {pr.owner}/{pr.repo}...")
        now = datetime.now(timezone.utc)
        run = anyio.run(_run_review, config, pr, post_comment, now)
    except Exception as exc:
        logger.debug("Review failed", exc_info=True)
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Found {len(run.files)} changed file(s)")
    click.echo(format_review_console(run.report))

    if save:
        path = save_review(run=run, output_dir=output, now=now)
        click.echo(f"Review saved to: {path}")
    if post_comment and run.report.total_findings > 0:
        click.echo("Review posted to GitHub")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int) -> None:
    """Run the GitHub webhook server."""
    uvicorn.run("pr_review.main:build_app", factory=True, host=host, port=port)


if __name__ == "__main__":
    cli()
