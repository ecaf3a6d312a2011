from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import Settings
from .ingest import load_csv
from .pipeline import PipelineConfig, RunStatus, run_pipeline
from .profile import DataQualityAnalyzer, analyze_data_context
from .providers import CredentialStore, ProviderManager
from .utils import write_json

app = typer.Typer(add_completion=False, help="Data Detective (profile data, ask an AI provider, score the answer)")

# ---- Provider commands ----
providers_app = typer.Typer(help="Inspect the AI providers available to this session.")
app.add_typer(providers_app, name="providers")


@app.callback()
def main_options(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _provider_manager(settings: Settings) -> ProviderManager:
    return ProviderManager(CredentialStore(settings.credentials), model_overrides=settings.model_overrides)


@providers_app.command("list")
def list_providers() -> None:
    """
    List the provider catalog.

    A provider is configured when its API key environment variable is set
    (OPENAI_API_KEY, ANTHROPIC_API_KEY, PERPLEXITY_API_KEY).
    """
    manager = _provider_manager(Settings.from_env())
    for p in manager.list_providers():
        state = "configured" if p.configured else "not configured"
        typer.echo(f"{p.kind.value}\t{p.name}\t{p.default_model}\t{state}")


@app.command()
def profile(
    data: Path = typer.Option(..., "--data", exists=True, help="Path to CSV file"),
    question: str = typer.Option("", "--question", help="Optional question to focus pattern detection"),
):
    """
    Print the lightweight DataInsights profile (types, patterns, quality axes) as JSON.
    """
    try:
        parsed = load_csv(data)
        insights = analyze_data_context(parsed.rows, parsed.column_names, question)
        typer.echo(json.dumps(insights.model_dump(mode="json"), indent=2, sort_keys=True))
    except FileNotFoundError as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=2)
    except Exception as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=1)


@app.command()
def quality(
    data: Path = typer.Option(..., "--data", exists=True, help="Path to CSV file"),
):
    """
    Print the DataQualityReport (completeness, consistency, accuracy, duplicates, outliers) as JSON.
    """
    try:
        parsed = load_csv(data)
        report = DataQualityAnalyzer(parsed.rows, parsed.column_names).analyze_data_quality()
        typer.echo(json.dumps(report.model_dump(mode="json"), indent=2, sort_keys=True))
    except FileNotFoundError as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=2)
    except Exception as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=1)


@app.command()
def run(
    data: Path = typer.Option(..., "--data", exists=True, help="Path to CSV file"),
    question: str = typer.Option(..., "--question", help="Analysis question"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory (default: runs/<run_id>)"),
    max_retries: Optional[int] = typer.Option(None, "--max-retries", help="Retries per failed stage"),
    no_recovery: bool = typer.Option(False, "--no-recovery", help="Stop at the first failed stage"),
):
    """
    Run the full pipeline against a CSV and write pipeline_run.json.

    Exit code 0 when the run completed or degraded, 1 when it failed.
    """
    try:
        settings = Settings.from_env()
        config = PipelineConfig.from_settings(settings)
        update: dict[str, object] = {}
        if max_retries is not None:
            update["max_retries"] = max_retries
        if no_recovery:
            update["enable_error_recovery"] = False
        if update:
            config = PipelineConfig(**{**config.model_dump(), **update})

        parsed = load_csv(data)
        result = run_pipeline(
            parsed,
            question,
            _provider_manager(settings),
            config=config,
            file_types=[data.suffix.lstrip(".").lower() or "csv"],
        )

        run_dir = out or Path("runs") / result.run_id
        out_path = run_dir / "pipeline_run.json"
        write_json(out_path, result.model_dump(mode="json"))

        typer.echo(f"Run {result.summary}")
        for s in result.stages:
            line = f"  {s.name.value}: {s.status.value} (attempts={s.attempts})"
            if s.error:
                line += f" - {s.error}"
            typer.echo(line)
        if result.requires_credentials:
            typer.echo("No provider configured: set OPENAI_API_KEY, ANTHROPIC_API_KEY or PERPLEXITY_API_KEY.")
        if result.answer is not None:
            typer.echo("")
            typer.echo(result.answer.answer.rstrip())
            if result.answer.confidence is not None:
                c = result.answer.confidence
                typer.echo(f"\nConfidence: {c.value:.2f} ({c.description})")
        typer.echo(f"\nWritten: {out_path}")

        if result.status == RunStatus.FAILED:
            raise typer.Exit(code=1)

    except typer.Exit:
        raise
    except FileNotFoundError as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=2)
    except Exception as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=1)
