"""threatgraph - Command Line Interface."""

import json
import logging
import sys
from typing import Optional

import click

from . import __version__
from .config import ConfigError, EngineConfig, load_config
from .enums import RiskSeverity
from .evaluation import RiskEvaluator
from .linker import ModelLinkError
from .model import ParsedModel
from .parser import ModelParseError, load_model
from .plugin import PluginError, load_custom_rules
from .rules import builtin_rules
from .rules.base import RiskRule
from .technologies import TechnologyRegistry, TechnologyRegistryError
from .tracking import RiskTrackingError, apply_wildcard_risk_tracking, check_risk_tracking


logger = logging.getLogger(__name__)

ENGINE_ERRORS = (
    ConfigError, ModelParseError, ModelLinkError, PluginError, RiskTrackingError, TechnologyRegistryError,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='[%(levelname)s] %(name)s: %(message)s',
    )


def _fail(prefix: str, error: Exception) -> None:
    click.echo(click.style(f'{prefix}: {error}', fg='red'), err=True)
    sys.exit(1)


def _build_config(config_path: Optional[str], **overrides) -> EngineConfig:
    config = load_config(config_path) if config_path else EngineConfig()
    return config.merged(**overrides)


def _load_rules(config: EngineConfig) -> dict[str, RiskRule]:
    rules: dict[str, RiskRule] = dict(builtin_rules())
    for rule_id, rule in load_custom_rules(config.custom_risk_rules_plugins, config.plugin_timeout).items():
        if rule_id in rules:
            logger.warning("Custom risk rule %s replaces the built-in rule with the same id", rule_id)
        rules[rule_id] = rule
    return rules


def _analyze(model_path: str, config: EngineConfig) -> tuple[ParsedModel, RiskEvaluator]:
    registry = TechnologyRegistry.load_default(config.technologies_file)
    rules = _load_rules(config)
    model = load_model(model_path, registry, [rule.category() for rule in rules.values()])
    evaluator = RiskEvaluator(rules, config.skip_risk_rules)
    evaluator.apply(model)
    apply_wildcard_risk_tracking(model, config.ignore_orphaned_risk_tracking)
    check_risk_tracking(model, config.ignore_orphaned_risk_tracking)
    return model, evaluator


@click.group()
@click.version_option(version=__version__)
def cli():
    """threatgraph - Architecture threat modeling engine."""
    pass


@cli.command()
@click.argument('model_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--technologies', type=click.Path(exists=True, dir_okay=False), help='Additional technologies file')
def validate(model_path: str, technologies: Optional[str]):
    """Parse and link a model file without evaluating risks."""
    try:
        registry = TechnologyRegistry.load_default(technologies)
        model = load_model(model_path, registry)
    except ENGINE_ERRORS as e:
        _fail('Validation failed', e)
    click.echo(click.style('Validation successful!', fg='green'))
    click.echo(f'  Model: {model.title}')
    click.echo(f'  Data Assets: {len(model.data_assets)}')
    click.echo(f'  Technical Assets: {len(model.technical_assets)}')
    click.echo(f'  Communication Links: {len(model.communication_links)}')
    click.echo(f'  Trust Boundaries: {len(model.trust_boundaries)}')
    click.echo(f'  Shared Runtimes: {len(model.shared_runtimes)}')


@cli.command()
@click.argument('model_path', type=click.Path(exists=True, dir_okay=False), required=False)
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False), help='Engine config file')
@click.option('--skip-rules', help='Comma-separated risk rule ids to skip')
@click.option('--custom-rule', 'custom_rules', multiple=True, type=click.Path(), help='Custom rule executable')
@click.option('--ignore-orphaned', is_flag=True, help='Tolerate orphaned risk tracking entries')
@click.option('--technologies', type=click.Path(exists=True, dir_okay=False), help='Additional technologies file')
@click.option('--plugin-timeout', type=float, help='Seconds to wait for a custom rule executable')
@click.option('--json', 'as_json', is_flag=True, help='Print the generated risks as JSON')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def analyze(model_path: Optional[str], config_path: Optional[str], skip_rules: Optional[str],
            custom_rules: tuple[str, ...], ignore_orphaned: bool, technologies: Optional[str],
            plugin_timeout: Optional[float], as_json: bool, verbose: bool):
    """Link a model, run every enabled risk rule and reconcile risk tracking."""
    _configure_logging(verbose)
    try:
        config = _build_config(
            config_path,
            input_file=model_path,
            skip_risk_rules=skip_rules,
            custom_risk_rules_plugins=list(custom_rules),
            ignore_orphaned_risk_tracking=ignore_orphaned or None,
            technologies_file=technologies,
            plugin_timeout=plugin_timeout,
        )
        model, _ = _analyze(config.input_file, config)
    except ENGINE_ERRORS as e:
        _fail('Analysis failed', e)

    if as_json:
        risks = [risk.model_dump(mode='json', by_alias=True) for risk in model.all_risks()]
        click.echo(json.dumps(risks, indent=2))
        return

    risks = model.all_risks()
    still_at_risk = model.filtered_by_still_at_risk(risks)
    click.echo(click.style('Analysis complete!', fg='green'))
    click.echo(f'  Model: {model.title}')
    click.echo(f'  Risks: {len(risks)} ({len(still_at_risk)} still at risk)')
    counts = model.count_by_severity(risks)
    open_counts = model.count_by_severity(still_at_risk)
    for severity in sorted(RiskSeverity, reverse=True):
        click.echo(f'  {severity.label}: {counts[severity]} ({open_counts[severity]} still at risk)')
    highest = model.highest_severity(still_at_risk)
    if highest is not None:
        click.echo(f'  Highest open severity: {highest.label}')
    tracked = {status: count for status, count in model.count_by_status(risks).items() if count}
    if tracked:
        click.echo('  Tracking: ' + ', '.join(f'{status.value} {count}' for status, count in tracked.items()))


@cli.command(name='explain-risk')
@click.argument('model_path', type=click.Path(exists=True, dir_okay=False))
@click.argument('risk_id')
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False), help='Engine config file')
@click.option('--custom-rule', 'custom_rules', multiple=True, type=click.Path(), help='Custom rule executable')
def explain_risk(model_path: str, risk_id: str, config_path: Optional[str], custom_rules: tuple[str, ...]):
    """Explain a single risk by its synthetic id."""
    try:
        config = _build_config(config_path, custom_risk_rules_plugins=list(custom_rules),
                               ignore_orphaned_risk_tracking=True)
        model, evaluator = _analyze(model_path, config)
        explanation = evaluator.explain_risk(model, risk_id)
    except ENGINE_ERRORS as e:
        _fail('Explanation failed', e)
    if not explanation:
        click.echo(click.style(f'No explanation available for risk: {risk_id}', fg='yellow'))
        sys.exit(1)
    for line in explanation:
        click.echo(line)


@cli.command(name='list-rules')
@click.option('--custom-rule', 'custom_rules', multiple=True, type=click.Path(), help='Custom rule executable')
def list_rules(custom_rules: tuple[str, ...]):
    """List built-in and loaded custom risk rules."""
    for rule_id, rule in builtin_rules().items():
        click.echo(f'{rule_id} --> {rule.category().title}')
    for rule_id, rule in load_custom_rules(custom_rules).items():
        click.echo(f'{rule_id} --> {rule.category().title} (custom)')


@cli.command(name='list-technologies')
@click.option('--technologies', type=click.Path(exists=True, dir_okay=False), help='Additional technologies file')
def list_technologies(technologies: Optional[str]):
    """List the technologies known to the registry."""
    try:
        registry = TechnologyRegistry.load_default(technologies)
    except TechnologyRegistryError as e:
        _fail('Failed to load technologies', e)
    for name in registry.names():
        technology = registry.get(name)
        click.echo(f'{name} --> {technology.description}')


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
