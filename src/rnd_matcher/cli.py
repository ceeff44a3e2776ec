"""CLI for the R&D matcher.

Ranks funding programs for an organization, scores single pairs, ranks
consortium partners and manages the matcher configuration.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .app_logging import setup_logging
from .config import find_config_file, get_config, load_config, save_default_config
from .eligibility_filter import EligibilityFilter
from .exceptions import ConfigError, MatcherError
from .explainer import explain_match, fallback_explanation
from .partner import PartnerCompatibilityEngine
from .ranker import MatchRanker
from .schema import CompatibilityResult, FundingProgram, Match, Organization
from .scorer import ProgramScorer
from .trl import trl_stage

console = Console()

_INPUT_ERRORS = (MatcherError, ValueError, OSError)


@click.group()
@click.version_option(version=__version__, prog_name="rnd-matcher")
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to matcher-config.yaml (default: auto-discovered)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable debug logging"
)
def main(config_path: Optional[str], verbose: bool):
    """R&D Funding Program Matcher.

    Ranks government R&D funding programs against an organization profile
    and finds complementary consortium partners.
    """
    path = Path(config_path) if config_path else find_config_file()
    if path:
        try:
            load_config(path)
        except ConfigError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)

    log_cfg = get_config().logging
    setup_logging(level="DEBUG" if verbose else log_cfg.level, dev_mode=log_cfg.dev_mode)


@main.command("rank")
@click.option(
    "--org", "-g", "org_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to organization profile JSON"
)
@click.option(
    "--programs", "-p", "programs_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to funding programs JSON (list or {\"programs\": [...]})"
)
@click.option(
    "--top", "-n",
    type=int,
    default=None,
    help="Maximum number of matches (default from config)"
)
@click.option(
    "--as-of",
    type=click.DateTime(),
    default=None,
    help="Reference date for deadlines (default: now, UTC)"
)
@click.option(
    "--json-output", "-j",
    is_flag=True,
    help="Output raw JSON instead of formatted text"
)
@click.option(
    "--out", "-o",
    type=click.Path(),
    help="Also write JSON results to this file"
)
def rank_cmd(
    org_path: str,
    programs_path: str,
    top: Optional[int],
    as_of: Optional[datetime],
    json_output: bool,
    out: Optional[str],
):
    """Rank funding programs for an organization.

    Examples:
        rnd-matcher rank -g org.json -p programs.json
        rnd-matcher rank -g org.json -p programs.json -n 5 --as-of 2025-03-01
    """
    try:
        org = load_organization(org_path)
        programs = load_programs(programs_path)
        matches = MatchRanker().rank(org, programs, top_n=top, as_of=_reference_time(as_of))
    except _INPUT_ERRORS as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    payload = json.dumps([m.model_dump(mode="json") for m in matches], indent=2, ensure_ascii=False)
    if json_output:
        print(payload)
    else:
        titles = {p.id: p.title for p in programs}
        display_matches(org, matches, titles)
    if out:
        with open(out, "w", encoding="utf-8") as f:
            f.write(payload)
        if not json_output:
            console.print(f"\n[green]Results saved to {out}[/green]")


@main.command("score")
@click.option(
    "--org", "-g", "org_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to organization profile JSON"
)
@click.option(
    "--programs", "-p", "programs_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to funding programs JSON"
)
@click.option(
    "--program-id",
    help="Program to score (default: first program in the file)"
)
@click.option(
    "--as-of",
    type=click.DateTime(),
    default=None,
    help="Reference date for deadlines (default: now, UTC)"
)
def score_cmd(org_path: str, programs_path: str, program_id: Optional[str], as_of: Optional[datetime]):
    """Score one program for an organization and show the breakdown."""
    try:
        org = load_organization(org_path)
        program = select_program(load_programs(programs_path), program_id)
        reference = _reference_time(as_of)
        result = ProgramScorer().score(org, program, reference)
        eligibility = EligibilityFilter().check(org, program, reference)
    except _INPUT_ERRORS as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    console.print(Panel(
        f"[bold]{program.title}[/bold]\n\n"
        f"Organization: {org.name or org.id} ({org.type.label})\n"
        f"Score: [bold cyan]{result.score}[/bold cyan] / 100\n"
        f"Eligibility: {eligibility.level.value}",
        title=program.id,
    ))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Dimension", style="cyan")
    table.add_column("Points", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Reasoning")
    for dim in result.dimensions:
        table.add_row(dim.dimension, str(dim.points), str(dim.max_points), dim.reasoning)
    console.print(table)

    if eligibility.failed:
        console.print("\n[bold red]Failed requirements:[/bold red]")
        for item in eligibility.failed:
            console.print(f"  ✗ {item}")
    if eligibility.needs_manual_review:
        console.print(f"\n[yellow]Manual review: {eligibility.manual_review_reason}[/yellow]")
    if result.reasons:
        console.print(f"\n[dim]Reasons: {', '.join(result.reasons)}[/dim]")


@main.command("explain")
@click.option(
    "--org", "-g", "org_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to organization profile JSON"
)
@click.option(
    "--programs", "-p", "programs_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to funding programs JSON"
)
@click.option(
    "--program-id",
    help="Program to explain (default: first program in the file)"
)
@click.option(
    "--as-of",
    type=click.DateTime(),
    default=None,
    help="Reference date for deadlines (default: now, UTC)"
)
def explain_cmd(org_path: str, programs_path: str, program_id: Optional[str], as_of: Optional[datetime]):
    """Explain a match without calling an external explainer."""
    try:
        org = load_organization(org_path)
        program = select_program(load_programs(programs_path), program_id)
        result = ProgramScorer().score(org, program, _reference_time(as_of))
    except _INPUT_ERRORS as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    explanation = explain_match(result.score, result.reasons, org.type, program)

    console.print(f"\n[bold blue]{program.title}[/bold blue]")
    console.print(f"[bold]{explanation.summary}[/bold]\n")
    for reason in explanation.reasons:
        console.print(f"  [green]✓[/green] {reason}")
    for warning in explanation.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")
    for rec in explanation.recommendations:
        console.print(f"  → {rec}")
    console.print(f"\n[dim]{fallback_explanation(result.score, result.breakdown, org.type)}[/dim]")


@main.command("partners")
@click.option(
    "--seeker", "-s", "seeker_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to the seeking organization's profile JSON"
)
@click.option(
    "--candidates", "-c", "candidates_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to candidate organizations JSON (list or {\"organizations\": [...]})"
)
@click.option(
    "--limit", "-n",
    type=int,
    default=None,
    help="Maximum number of partners (default from config)"
)
@click.option(
    "--json-output", "-j",
    is_flag=True,
    help="Output raw JSON instead of formatted text"
)
def partners_cmd(seeker_path: str, candidates_path: str, limit: Optional[int], json_output: bool):
    """Rank candidate consortium partners for an organization."""
    try:
        seeker = load_organization(seeker_path)
        candidates = load_organizations(candidates_path)
        results = PartnerCompatibilityEngine().generate_matches(seeker, candidates, limit)
    except _INPUT_ERRORS as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    if json_output:
        print(json.dumps([r.model_dump(mode="json") for r in results], indent=2, ensure_ascii=False))
        return

    names = {c.id: c.name or c.id for c in candidates}
    display_partners(seeker, results, names)


@main.command("init-config")
@click.option(
    "--out", "-o",
    type=click.Path(),
    default="matcher-config.yaml",
    help="Output path for the configuration file"
)
@click.option(
    "--force", "-f",
    is_flag=True,
    help="Overwrite existing config file"
)
def init_config_cmd(out: str, force: bool):
    """Generate a default matcher configuration file.

    Example:
        rnd-matcher init-config --out my-config.yaml
    """
    out_path = Path(out)
    if out_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists: {out}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        save_default_config(out_path)
    except OSError as e:
        console.print(f"[red]Error creating config:[/red] {e}")
        sys.exit(1)

    console.print(f"[green]✓[/green] Config file created: {out}")
    console.print("\nThis file configures:")
    console.print("  • scoring_weights - Maximum points per scoring dimension (sum 100)")
    console.print("  • trl_confidence - TRL score multipliers by requirement provenance")
    console.print("  • deadline - Deadline proximity bands")
    console.print("  • ranking / partner - Result sizes and filtering")
    console.print("  • explanation - Explanation cache and generation limits")
    console.print("\nThe matcher will look for config in this order:")
    console.print("  1. RND_MATCHER_CONFIG environment variable")
    console.print("  2. ./matcher-config.yaml (current directory)")
    console.print("  3. ~/.config/rnd-matcher/config.yaml")


@main.command("show-config")
def show_config_cmd():
    """Print the active configuration as YAML."""
    data = get_config().model_dump(mode="json")
    print(yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True))


def _reference_time(as_of: Optional[datetime]) -> datetime:
    if as_of is None:
        return datetime.now(timezone.utc)
    if as_of.tzinfo is None:
        return as_of.replace(tzinfo=timezone.utc)
    return as_of


def _read_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_organization(path: str) -> Organization:
    """Load a single organization profile from JSON."""
    return Organization.model_validate(_read_json(path))


def load_organizations(path: str) -> list[Organization]:
    """Load organizations from a JSON list or an {"organizations": [...]} object."""
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("organizations", [])
    return [Organization.model_validate(item) for item in data]


def load_programs(path: str) -> list[FundingProgram]:
    """Load programs from a JSON list or a {"programs": [...]} object."""
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("programs", [])
    return [FundingProgram.model_validate(item) for item in data]


def select_program(programs: list[FundingProgram], program_id: Optional[str]) -> FundingProgram:
    """Pick a program by id, or the first one."""
    if not programs:
        raise ValueError("No programs in input")
    if program_id is None:
        return programs[0]
    for program in programs:
        if program.id == program_id:
            return program
    raise ValueError(f"Program not found: {program_id}")


def display_matches(org: Organization, matches: list[Match], titles: dict[str, str]):
    """Display ranked matches as a table."""
    trl = org.relevant_trl
    console.print(f"\n[bold blue]{org.name or org.id}[/bold blue] ({org.type.label})")
    console.print(f"Industry: {org.industry_sector or '-'} | TRL: {trl or '-'} ({trl_stage(trl)})\n")

    if not matches:
        console.print("[yellow]No matching programs found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Program", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("KW/IND/TRL/TYPE/RD/DL")
    table.add_column("Deadline")
    table.add_column("Eligibility")

    for i, match in enumerate(matches, 1):
        b = match.breakdown
        table.add_row(
            str(i),
            f"{match.program_id} {titles.get(match.program_id, '')[:40]}",
            str(match.score),
            f"{b.keyword}/{b.industry}/{b.trl}/{b.organization_type}/{b.rd_experience}/{b.deadline}",
            match.deadline.strftime("%Y-%m-%d") if match.deadline else "-",
            match.eligibility.value if match.eligibility else "-",
        )
    console.print(table)


def display_partners(seeker: Organization, results: list[CompatibilityResult], names: dict[str, str]):
    """Display ranked partner candidates as a table."""
    console.print(f"\n[bold blue]Partners for {seeker.name or seeker.id}[/bold blue]\n")

    if not results:
        console.print("[yellow]No partner candidates found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Partner", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("TRL/IND/SCALE/EXP")
    table.add_column("Reasons")

    for i, result in enumerate(results, 1):
        b = result.breakdown
        table.add_row(
            str(i),
            names.get(result.partner_id, result.partner_id),
            str(result.score),
            f"{b.trl_fit}/{b.industry}/{b.scale}/{b.experience}",
            ", ".join(r.value for r in result.reasons),
        )
    console.print(table)

    top = results[0]
    console.print(f"\n[dim]{names.get(top.partner_id, top.partner_id)}: {top.explanation}[/dim]")


if __name__ == "__main__":
    main()
