"""
GTM Variable Chain Parser
Traces every GA4 parameter back through GTM variables to its primitive data sources.

    GA4 parameter -> {{GTM Variable}} -> {{GTM Variable}} ... -> data source

Output parameters come from Google Tag Event Settings variables (gtes);
the measurement ID routing table is a lookup variable named like
"RT - GA4 MeasurementId Table".
"""

import json
import logging
from typing import Dict, List, Optional, Sequence, Set

from gtm_models import (
    DataSource,
    DataSourceType,
    EnvironmentTable,
    EnvironmentTableEntry,
    EventSettingsParam,
    ParsedConfig,
    ParsedVariable,
    VariableChain,
    VariableKind,
)
from gtm_provenance_config import (
    CYCLE_DETECTED,
    ENVIRONMENT_EXACT_KEYS,
    ENVIRONMENT_SUBSTRING_RULES,
    ENVIRONMENT_TABLE_TOKEN,
    GLOBAL_VARIABLE_PREFIXES,
    MAX_CHAIN_DEPTH,
    MAX_DEPTH_EXCEEDED,
)
from gtm_source_extractors import extract_gtm_references
from gtm_variable_interpreter import get_map_value, get_param_list, interpret_variable

logger = logging.getLogger(__name__)


def infer_environment(pattern: str) -> Optional[str]:
    """Best-effort environment label for a lookup key ('true' -> PRD, 'dev.example.com' -> DEV)"""
    if not isinstance(pattern, str):
        return None

    lower = pattern.strip().lower()
    if lower in ENVIRONMENT_EXACT_KEYS:
        return ENVIRONMENT_EXACT_KEYS[lower]

    for substrings, environment in ENVIRONMENT_SUBSTRING_RULES:
        if any(s in lower for s in substrings):
            return environment
    return None


def is_environment_table_name(name: str) -> bool:
    normalized = name.lower()
    for char in (' ', '_', '-'):
        normalized = normalized.replace(char, '')
    return ENVIRONMENT_TABLE_TOKEN in normalized


class GTMVariableChainParser:
    def __init__(self, gtm_data: dict, max_depth: int = MAX_CHAIN_DEPTH,
                 global_prefixes: Sequence[str] = GLOBAL_VARIABLE_PREFIXES):
        if not isinstance(gtm_data, dict):
            raise ValueError('GTM export must be a JSON object')

        container_version = gtm_data.get('containerVersion', gtm_data)
        if not isinstance(container_version, dict):
            container_version = {}

        variables = container_version.get('variable', [])
        self.container_version = container_version
        self.raw_variable_list = variables if isinstance(variables, list) else []
        self.max_depth = max_depth
        self.global_prefixes = tuple(global_prefixes)

        self.variables: Dict[str, ParsedVariable] = {}
        self.raw_variables: Dict[str, dict] = {}

        # Track unknown variable types for reporting
        self.unknown_variable_types: Set[str] = set()

    def parse(self) -> ParsedConfig:
        """Run the full pipeline: variables, event settings, measurement IDs, chains"""
        self.parse_all_variables()
        event_settings = self.parse_event_settings()
        measurement_id_config = self.parse_environment_table()
        variable_chains = self.build_all_variable_chains(event_settings)

        logger.info(f"Parsed {len(self.variables)} variables, {len(event_settings)} event settings, "
                    f"{len(variable_chains)} chains")

        return ParsedConfig(
            container_id=self._container_id(),
            container_name=self._container_name(),
            variables=self.variables,
            event_settings=event_settings,
            measurement_id_config=measurement_id_config,
            variable_chains=variable_chains,
        )

    def _container_id(self) -> str:
        container_id = self.container_version.get('containerId')
        if not container_id:
            container = self.container_version.get('container') or {}
            container_id = container.get('containerId') if isinstance(container, dict) else None
        return str(container_id) if container_id else 'unknown'

    def _container_name(self) -> Optional[str]:
        container = self.container_version.get('container')
        if isinstance(container, dict) and container.get('name'):
            return container['name']
        return self.container_version.get('name')

    # ==========================================================================
    # Variables
    # ==========================================================================

    def parse_all_variables(self) -> Dict[str, ParsedVariable]:
        for raw in self.raw_variable_list:
            parsed = interpret_variable(raw, self.global_prefixes)
            self.variables[parsed.name] = parsed
            self.raw_variables[parsed.name] = raw if isinstance(raw, dict) else {}

            raw_type = self.raw_variables[parsed.name].get('type')
            if parsed.type == VariableKind.UNKNOWN and raw_type:
                self.unknown_variable_types.add(str(raw_type))

        return self.variables

    # ==========================================================================
    # Event Settings
    # ==========================================================================

    def parse_event_settings(self) -> List[EventSettingsParam]:
        """Every GA4 parameter declared in any Event Settings variable, duplicates included"""
        results = []

        for name, variable in self.variables.items():
            if variable.type != VariableKind.EVENT_SETTINGS:
                continue
            params = self.raw_variables.get(name, {}).get('parameter')

            for row in get_param_list(params, 'eventSettingsTable'):
                ga4_param = get_map_value(row, 'parameter')
                value = get_map_value(row, 'parameterValue')
                if ga4_param and value:
                    results.append(EventSettingsParam(ga4_param=ga4_param, gtm_variable=value, scope='event'))

            for row in get_param_list(params, 'userProperties'):
                prop_name = get_map_value(row, 'name')
                value = get_map_value(row, 'value')
                if prop_name and value:
                    results.append(EventSettingsParam(ga4_param=prop_name, gtm_variable=value, scope='user'))

        return results

    # ==========================================================================
    # Measurement ID table
    # ==========================================================================

    def parse_environment_table(self) -> Optional[EnvironmentTable]:
        """First lookup variable named like a measurement ID table, or None"""
        for name, variable in self.variables.items():
            if not (variable.type.is_lookup and is_environment_table_name(name)):
                continue

            table = EnvironmentTable(variable_name=name)
            for mapping in variable.lookup_mappings or []:
                table.entries.append(EnvironmentTableEntry(
                    pattern=mapping.key,
                    measurement_id=mapping.value,
                    environment=infer_environment(mapping.key),
                ))

            for source in variable.data_sources:
                if source.type == DataSourceType.CONSTANT and source.name == 'default':
                    table.default_id = source.value
                    break

            return table

        return None

    # ==========================================================================
    # Chains
    # ==========================================================================

    def build_all_variable_chains(self, event_settings: List[EventSettingsParam]) -> Dict[str, VariableChain]:
        chains = {}

        for setting in event_settings:
            if setting.ga4_param in chains:
                continue

            refs = extract_gtm_references(setting.gtm_variable)
            if not refs:
                logger.debug(f"Skipping '{setting.ga4_param}': no variable reference in '{setting.gtm_variable}'")
                continue

            # Fresh visited set per GA4 parameter
            chain = self.build_variable_chain(refs[0], 0, set())
            chain.ga4_param = setting.ga4_param
            chain.scope = setting.scope
            chains[setting.ga4_param] = chain

        return chains

    def build_variable_chain(self, variable_name: str, depth: int = 0,
                             visited: Optional[Set[str]] = None) -> VariableChain:
        """
        Build the dependency chain for one variable (recursive).

        ``visited`` holds every name already reached in this chain and is never
        unmarked, so each variable is expanded at most once per GA4 parameter.
        A second reference, or a depth beyond ``max_depth``, becomes a sentinel
        leaf instead of further recursion. Names that are not in the container
        resolve to a GTM built-in leaf.
        """
        if visited is None:
            visited = set()

        if variable_name in visited:
            logger.debug(f"Cycle at '{variable_name}' (depth {depth})")
            return self._sentinel(variable_name, CYCLE_DETECTED, depth)

        if depth > self.max_depth:
            logger.debug(f"Max depth exceeded at '{variable_name}' (depth {depth})")
            return self._sentinel(variable_name, MAX_DEPTH_EXCEEDED, depth)

        visited.add(variable_name)

        variable = self.variables.get(variable_name)
        if variable is None:
            return VariableChain(
                gtm_variable=variable_name,
                variable_type=VariableKind.UNKNOWN,
                data_sources=[DataSource(type=DataSourceType.GTM_BUILTIN, name=variable_name)],
                depth=depth,
            )

        chain = VariableChain(
            gtm_variable=variable_name,
            variable_type=variable.type,
            data_sources=list(variable.data_sources),
            lookup_mappings=list(variable.lookup_mappings) if variable.lookup_mappings is not None else None,
            depth=depth,
        )

        for ref in variable.gtm_references:
            chain.dependencies.append(self.build_variable_chain(ref, depth + 1, visited))

        return chain

    @staticmethod
    def _sentinel(variable_name: str, label: str, depth: int) -> VariableChain:
        return VariableChain(
            gtm_variable=variable_name,
            variable_type=VariableKind.UNKNOWN,
            data_sources=[DataSource(type=DataSourceType.COMPUTED, name=label)],
            depth=depth,
        )


# ============================================================================
# Loading
# ============================================================================

def load_gtm_json(file_path: str) -> dict:
    """Read a GTM export. FileNotFoundError and JSONDecodeError propagate to the caller."""
    with open(file_path, 'r', encoding='utf-8') as f:
        gtm_data = json.load(f)

    if not isinstance(gtm_data, dict):
        raise ValueError(f"'{file_path}' is not a GTM export (expected a JSON object)")
    return gtm_data


def parse_gtm_file(file_path: str, **parser_options) -> ParsedConfig:
    """Parse a GTM export file into a ParsedConfig"""
    return GTMVariableChainParser(load_gtm_json(file_path), **parser_options).parse()
