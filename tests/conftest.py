"""Shared test fixtures."""

import copy
import json

import pytest


# ── Builders ─────────────────────────────────────────────────────────────

def template(key, value):
    return {'type': 'TEMPLATE', 'key': key, 'value': value}


def map_row(**entries):
    return {'type': 'MAP', 'map': [template(k, v) for k, v in entries.items()]}


def make_variable(name, var_type, parameter=None, variable_id='1', notes=None):
    variable = {
        'accountId': '6000000000',
        'containerId': '100000000',
        'variableId': variable_id,
        'name': name,
        'type': var_type,
        'parameter': parameter or [],
    }
    if notes is not None:
        variable['notes'] = notes
    return variable


def make_export(variables, container_id='100000000', public_id='GTM-TEST123'):
    return {
        'exportFormatVersion': 2,
        'containerVersion': {
            'accountId': '6000000000',
            'containerId': container_id,
            'container': {
                'containerId': container_id,
                'name': public_id,
                'publicId': public_id,
            },
            'variable': variables,
        },
    }


# ── Sample container ─────────────────────────────────────────────────────

SITE_NAME_JS = """function() {
  try {
    return window.AP_DATA_SITENAME;
  } catch (e) {
    return "unknown";
  }
}"""

PAGE_TYPE_JS = """function() {
  var type = AP_DATA_PAGETYPE || '';
  return type + ':' + {{DL - Event}};
}"""

SAMPLE_VARIABLES = [
    make_variable('JS - Site Name', 'jsm', [template('javascript', SITE_NAME_JS)], '1'),
    make_variable('DL - Event', 'v', [
        template('dataLayerVersion', '2'),
        template('name', 'event'),
        template('defaultValue', 'none'),
    ], '2'),
    make_variable('JS - Page Type', 'jsm', [template('javascript', PAGE_TYPE_JS)], '3'),
    make_variable('LT - Content Group', 'smm', [
        template('input', '{{JS - Page Type}}'),
        {'type': 'LIST', 'key': 'map', 'list': [
            map_row(key='main:gtm.js', value='home'),
            map_row(key='product:gtm.js', value='product'),
        ]},
        template('defaultValue', 'other'),
    ], '4'),
    make_variable('Const - Currency', 'c', [template('value', 'KRW')], '5'),
    make_variable('RT - GA4 MeasurementId Table', 'smm', [
        template('input', '{{Debug Mode}}'),
        {'type': 'LIST', 'key': 'map', 'list': [
            map_row(key='true', value='G-PROD1'),
            map_row(key='false', value='G-DEV1'),
        ]},
        template('defaultValue', 'G-DEFAULT'),
    ], '6'),
    make_variable('GT - Event Settings', 'gtes', [
        {'type': 'LIST', 'key': 'eventSettingsTable', 'list': [
            map_row(parameter='site_name', parameterValue='{{JS - Site Name}}'),
            map_row(parameter='content_group', parameterValue='{{LT - Content Group}}'),
            map_row(parameter='currency', parameterValue='{{Const - Currency}}'),
            map_row(parameter='send_page_view', parameterValue='false'),
        ]},
        {'type': 'LIST', 'key': 'userProperties', 'list': [
            map_row(name='login_state', value='{{Login State}}'),
        ]},
    ], '7'),
]


@pytest.fixture
def sample_gtm_data():
    return make_export(copy.deepcopy(SAMPLE_VARIABLES))


@pytest.fixture
def write_gtm_json(tmp_path):
    """Write an export dict to a file in tmp_path and return the path as a string"""
    def _write(gtm_data, filename='GTM-TEST123_workspace1.json'):
        path = tmp_path / filename
        path.write_text(json.dumps(gtm_data), encoding='utf-8')
        return str(path)
    return _write
