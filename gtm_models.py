"""
Data model for GTM variable provenance resolution.

A parse run turns the ``variable`` list of a GTM export into ParsedVariable
records, resolves every GA4 output parameter declared in Event Settings
variables into a VariableChain and bundles the lot into a ParsedConfig.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional


class DataSourceType(str, Enum):
    GLOBAL_VARIABLE = 'global_variable'
    DATALAYER = 'datalayer'
    CONSTANT = 'constant'
    URL = 'url'
    DOM = 'dom'
    COOKIE = 'cookie'
    COMPUTED = 'computed'
    GTM_BUILTIN = 'gtm_builtin'


class VariableKind(str, Enum):
    CUSTOM_JAVASCRIPT = 'jsm'
    DATALAYER = 'v'
    SIMPLE_LOOKUP = 'smm'
    REGEX_LOOKUP = 'remm'
    CONSTANT = 'c'
    EVENT_SETTINGS = 'gtes'
    JAVASCRIPT_VARIABLE = 'j'
    COOKIE = 'k'
    URL = 'u'
    DOM_ELEMENT = 'd'
    GA_SETTINGS = 'gas'
    AUTO_EVENT = 'aev'
    CUSTOM_TEMPLATE = 'cvt'
    UNKNOWN = 'unknown'

    @classmethod
    def from_gtm_type(cls, var_type) -> 'VariableKind':
        """Map the raw ``type`` of an exported variable onto a known kind"""
        if not isinstance(var_type, str):
            return cls.UNKNOWN
        if var_type.startswith('cvt_'):
            return cls.CUSTOM_TEMPLATE
        try:
            return cls(var_type)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_lookup(self) -> bool:
        return self in (VariableKind.SIMPLE_LOOKUP, VariableKind.REGEX_LOOKUP)


@dataclass(frozen=True)
class DataSource:
    """One primitive origin of a value. Never points at another GTM variable."""
    type: DataSourceType
    name: str
    path: Optional[str] = None
    selector: Optional[str] = None
    fallback: Optional[str] = None
    value: Optional[str] = None

    @property
    def key(self):
        return (self.type, self.name)

    def to_dict(self) -> Dict:
        result = {'type': self.type.value, 'name': self.name}
        for attr in ('path', 'selector', 'fallback', 'value'):
            attr_value = getattr(self, attr)
            if attr_value is not None:
                result[attr] = attr_value
        return result


@dataclass(frozen=True)
class LookupMapping:
    key: str
    value: str

    def to_dict(self) -> Dict:
        return {'key': self.key, 'value': self.value}


@dataclass
class ParsedVariable:
    id: str
    name: str
    type: VariableKind
    data_sources: List[DataSource] = field(default_factory=list)
    gtm_references: List[str] = field(default_factory=list)
    lookup_mappings: Optional[List[LookupMapping]] = None
    lookup_input: Optional[str] = None
    raw_code: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict:
        result = {
            'id': self.id,
            'name': self.name,
            'type': self.type.value,
            'dataSources': [s.to_dict() for s in self.data_sources],
            'gtmReferences': list(self.gtm_references),
        }
        if self.lookup_mappings is not None:
            result['lookupMappings'] = [m.to_dict() for m in self.lookup_mappings]
        if self.lookup_input is not None:
            result['lookupInput'] = self.lookup_input
        if self.notes:
            result['notes'] = self.notes
        return result


@dataclass(frozen=True)
class EventSettingsParam:
    ga4_param: str
    gtm_variable: str
    scope: str  # 'event' or 'user'

    def to_dict(self) -> Dict:
        return {'ga4Param': self.ga4_param, 'gtmVariable': self.gtm_variable, 'scope': self.scope}


@dataclass(frozen=True)
class EnvironmentTableEntry:
    pattern: str
    measurement_id: str
    environment: Optional[str] = None

    def to_dict(self) -> Dict:
        result = {'pattern': self.pattern, 'measurementId': self.measurement_id}
        if self.environment:
            result['environment'] = self.environment
        return result


@dataclass
class EnvironmentTable:
    """Measurement ID routing table. Entries keep their declared order (first match wins)."""
    variable_name: str
    entries: List[EnvironmentTableEntry] = field(default_factory=list)
    default_id: Optional[str] = None

    def to_dict(self) -> Dict:
        result = {
            'variableName': self.variable_name,
            'conditions': [e.to_dict() for e in self.entries],
        }
        if self.default_id is not None:
            result['defaultId'] = self.default_id
        return result


@dataclass
class VariableChain:
    gtm_variable: str
    variable_type: VariableKind
    data_sources: List[DataSource] = field(default_factory=list)
    dependencies: List['VariableChain'] = field(default_factory=list)
    lookup_mappings: Optional[List[LookupMapping]] = None
    depth: int = 0
    ga4_param: Optional[str] = None
    scope: Optional[str] = None  # scope of the declaration the chain was built for

    def walk(self) -> Iterator['VariableChain']:
        """Depth-first, pre-order traversal of this chain"""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.dependencies))

    def to_dict(self) -> Dict:
        result = {
            'gtmVariable': self.gtm_variable,
            'variableType': self.variable_type.value,
            'dataSources': [s.to_dict() for s in self.data_sources],
            'dependencies': [d.to_dict() for d in self.dependencies],
            'depth': self.depth,
        }
        if self.ga4_param is not None:
            result['ga4Param'] = self.ga4_param
        if self.scope is not None:
            result['scope'] = self.scope
        if self.lookup_mappings is not None:
            result['lookupMappings'] = [m.to_dict() for m in self.lookup_mappings]
        return result


def extract_ultimate_data_sources(chain: VariableChain) -> List[DataSource]:
    """
    Collect the primitive data sources feeding a chain.

    Computed markers (event settings, cycle and depth sentinels) are dropped and
    the remainder is de-duplicated on (type, name), keeping first-seen order.
    """
    sources = []
    seen = set()
    for node in chain.walk():
        for source in node.data_sources:
            if source.type == DataSourceType.COMPUTED:
                continue
            if source.key in seen:
                continue
            seen.add(source.key)
            sources.append(source)
    return sources


def describe_data_source(source: DataSource) -> str:
    """Short human-readable description of a data source"""
    if source.type == DataSourceType.GLOBAL_VARIABLE:
        return f'global variable {source.name}'
    if source.type == DataSourceType.DATALAYER:
        return f'dataLayer {source.path or source.name}'
    if source.type == DataSourceType.GTM_BUILTIN:
        return f'GTM built-in {source.name}'
    if source.type == DataSourceType.URL:
        return 'URL'
    if source.type == DataSourceType.COOKIE:
        return f'cookie {source.name}'
    if source.type == DataSourceType.DOM:
        return f'DOM {source.selector or source.name}'
    if source.type == DataSourceType.CONSTANT and source.value is not None:
        return f'constant "{source.value}"'
    return source.name


@dataclass
class ParsedConfig:
    """Result of one parse run. Owned by the caller; nothing is cached globally."""
    container_id: str
    container_name: Optional[str] = None
    variables: Dict[str, ParsedVariable] = field(default_factory=dict)
    event_settings: List[EventSettingsParam] = field(default_factory=list)
    measurement_id_config: Optional[EnvironmentTable] = None
    variable_chains: Dict[str, VariableChain] = field(default_factory=dict)

    def get_variable_chain(self, ga4_param: str) -> Optional[VariableChain]:
        return self.variable_chains.get(ga4_param)

    def get_declaration_chain(self, param: EventSettingsParam) -> Optional[VariableChain]:
        """
        Chain for one event settings row. Chains are keyed by parameter name only,
        so a user property sharing its name with an event parameter declared
        first (or the reverse) has no chain of its own.
        """
        chain = self.get_variable_chain(param.ga4_param)
        if chain is None or (chain.scope is not None and chain.scope != param.scope):
            return None
        return chain

    def get_data_sources(self, ga4_param: str) -> List[DataSource]:
        chain = self.get_variable_chain(ga4_param)
        if chain is None:
            return []
        return extract_ultimate_data_sources(chain)

    def uses_global_variable(self, ga4_param: str) -> Dict:
        names = [s.name for s in self.get_data_sources(ga4_param)
                 if s.type == DataSourceType.GLOBAL_VARIABLE]
        return {'uses': bool(names), 'variables': names}

    def uses_datalayer(self, ga4_param: str) -> Dict:
        paths = [s.path or s.name for s in self.get_data_sources(ga4_param)
                 if s.type == DataSourceType.DATALAYER]
        return {'uses': bool(paths), 'paths': paths}

    def find_params_by_global_var(self, global_var_name: str) -> List[str]:
        """GA4 parameters whose chain ends in the given global variable"""
        return [
            ga4_param for ga4_param in self.variable_chains
            if global_var_name in self.uses_global_variable(ga4_param)['variables']
        ]

    def describe_parameter(self, ga4_param: str) -> Optional[Dict]:
        chain = self.get_variable_chain(ga4_param)
        if chain is None:
            return None

        sources = extract_ultimate_data_sources(chain)
        descriptions = [describe_data_source(s) for s in sources]
        if descriptions:
            description = f"Value read from {' or '.join(descriptions)}"
        else:
            description = 'Unknown source'

        return {
            'gtmVariable': chain.gtm_variable,
            'variableType': chain.variable_type.value,
            'dataSources': [s.to_dict() for s in sources],
            'description': description,
        }

    def params_by_scope(self, scope: str) -> List[EventSettingsParam]:
        """Event settings of one scope, first declaration of each parameter only"""
        seen = set()
        params = []
        for param in self.event_settings:
            if param.scope != scope or param.ga4_param in seen:
                continue
            seen.add(param.ga4_param)
            params.append(param)
        return params

    def to_dict(self) -> Dict:
        return {
            'containerId': self.container_id,
            'containerName': self.container_name,
            'variables': {name: v.to_dict() for name, v in self.variables.items()},
            'eventSettings': [p.to_dict() for p in self.event_settings],
            'measurementIdConfig': (self.measurement_id_config.to_dict()
                                    if self.measurement_id_config else None),
            'variableChains': {param: c.to_dict() for param, c in self.variable_chains.items()},
        }
