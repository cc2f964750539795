#!/usr/bin/env python3
"""
GTM Parameter Mapping Pipeline
Traces every GA4 parameter in a GTM export back to its data sources and writes a mapping table.

Usage:
    python run_gtm_mapping.py <path_to_gtm_export.json> [options]

Options:
    --output-dir DIR     Output directory for generated files (default: same as input)
    --csv                Also write the mapping table as CSV
    --graph              Also write an interactive provenance graph (HTML)
    --json               Also write the full parse result as JSON
    --show PARAM         Print the variable chain of a GA4 parameter (repeatable)
    --max-depth N        Maximum chain depth (default: 10)
    --debug              Show debug logging during parsing
"""

import argparse
import json
import logging
import os
import re
import sys

from gtm_chain_graph import build_reference_graph, create_chain_visualization, find_reference_cycles, get_graph_stats
from gtm_mapping_table import format_sources, format_variable_chain, save_mapping_csv, save_mapping_table
from gtm_models import ParsedConfig, extract_ultimate_data_sources
from gtm_provenance_config import MAX_CHAIN_DEPTH, VARIABLE_TYPE_NAMES
from gtm_variable_chain_parser import GTMVariableChainParser, load_gtm_json


def validate_filename(file_path):
    """
    Validate that the filename doesn't contain copy indicators like (1), (2), etc.
    These appear when files are duplicated by the OS (e.g. downloaded twice).
    """
    basename = os.path.basename(file_path)

    copy_pattern = re.compile(r'\(\d+\)')
    match = copy_pattern.search(basename)

    if match:
        clean_name = copy_pattern.sub('', basename)
        clean_name = re.sub(r'  +', ' ', clean_name).strip()
        # "file (1).json" -> "file.json"
        clean_name = re.sub(r' \.', '.', clean_name)

        print(f"ERROR: The filename '{basename}' contains a copy indicator '{match.group()}'.")
        print("  This usually means the file is a duplicate created by your OS.")
        print()

        clean_path = os.path.join(os.path.dirname(file_path), clean_name)
        if os.path.exists(clean_path):
            print(f"  NOTE: The clean-named file '{clean_name}' already exists in the same directory.")
            print("  You may want to use that one instead:")
            print(f"    python {os.path.basename(__file__)} \"{clean_path}\"")
        else:
            print("  To rename, run:")
            print(f"    mv \"{file_path}\" \"{clean_path}\"")

        sys.exit(1)


def output_base(file_path, output_dir=None):
    base_name = os.path.basename(file_path)
    if base_name.endswith('.json'):
        base_name = base_name[:-5]
    directory = output_dir or os.path.dirname(file_path) or '.'
    return os.path.join(directory, base_name)


def print_summary(config: ParsedConfig, parser: GTMVariableChainParser):
    print(f"Container: {config.container_id}" +
          (f" ({config.container_name})" if config.container_name else ""))
    print(f"Variables parsed: {len(config.variables)}")

    type_counts = {}
    for variable in config.variables.values():
        type_counts[variable.type.value] = type_counts.get(variable.type.value, 0) + 1
    for var_type, count in sorted(type_counts.items(), key=lambda x: -x[1]):
        print(f"  {VARIABLE_TYPE_NAMES.get(var_type, var_type):<30} {count}")

    event_params = config.params_by_scope('event')
    user_params = config.params_by_scope('user')
    print(f"Event parameters: {len(event_params)}")
    print(f"User properties: {len(user_params)}")
    print(f"Resolved chains: {len(config.variable_chains)}")

    for title, params in (('EVENT PARAMETERS', event_params), ('USER PROPERTIES', user_params)):
        if not params:
            continue
        print()
        print(title)
        print("-" * 80)
        for param in params:
            chain = config.get_declaration_chain(param)
            sources = extract_ultimate_data_sources(chain) if chain else []
            print(f"  {param.ga4_param:<30} {param.gtm_variable:<35} {format_sources(sources)}")

    table = config.measurement_id_config
    if table:
        print()
        print(f"MEASUREMENT ID ROUTING ({table.variable_name})")
        print("-" * 80)
        for entry in table.entries:
            print(f"  {entry.pattern:<30} {entry.measurement_id:<20} {entry.environment or '-'}")
        if table.default_id is not None:
            print(f"  {'(default)':<30} {table.default_id}")

    if parser.unknown_variable_types:
        print()
        print("UNKNOWN VARIABLE TYPES (references only)")
        print("-" * 80)
        for var_type in sorted(parser.unknown_variable_types):
            print(f"  {var_type}")


def print_chain(config: ParsedConfig, ga4_param):
    chain = config.get_variable_chain(ga4_param)
    print()
    if chain is None:
        print(f"No variable chain for '{ga4_param}'")
        return

    print(f"{ga4_param}:")
    print(format_variable_chain(chain))
    print()
    print("  Ultimate data sources:")
    for source in config.get_data_sources(ga4_param):
        print(f"    - {format_sources([source])}")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Trace GA4 parameters in a GTM export back to their data sources')
    parser.add_argument('file', help='Path to the GTM container export (.json)')
    parser.add_argument('--output-dir', default=None,
                        help='Output directory for generated files (default: same as input)')
    parser.add_argument('--csv', action='store_true', help='Also write the mapping table as CSV')
    parser.add_argument('--graph', action='store_true', help='Also write an interactive provenance graph')
    parser.add_argument('--json', action='store_true', help='Also write the full parse result as JSON')
    parser.add_argument('--show', action='append', default=[], metavar='PARAM',
                        help='Print the variable chain of a GA4 parameter (repeatable)')
    parser.add_argument('--max-depth', type=int, default=MAX_CHAIN_DEPTH,
                        help=f'Maximum chain depth (default: {MAX_CHAIN_DEPTH})')
    parser.add_argument('--debug', action='store_true', help='Show debug logging during parsing')

    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    # --- Step 0: Validate the input file ---
    if not os.path.exists(args.file):
        print(f"ERROR: File '{args.file}' not found.")
        sys.exit(1)

    if not args.file.endswith('.json'):
        print("ERROR: Input file must be a .json GTM export file.")
        sys.exit(1)

    validate_filename(args.file)

    if args.output_dir:
        os.makedirs(args.output_dir, exist_ok=True)
    base = output_base(args.file, args.output_dir)

    # --- Step 1: Parse the container ---
    print("=" * 80)
    print("STEP 1: Resolving GA4 parameter chains")
    print("=" * 80)
    print()

    try:
        chain_parser = GTMVariableChainParser(load_gtm_json(args.file), max_depth=args.max_depth)
        config = chain_parser.parse()
    except json.JSONDecodeError as e:
        print(f"ERROR: Invalid JSON file. {e}")
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print_summary(config, chain_parser)

    for ga4_param in args.show:
        print_chain(config, ga4_param)

    cycles = find_reference_cycles(config)
    if cycles:
        print()
        print("REFERENCE CYCLES")
        print("-" * 80)
        for cycle in cycles:
            print("  " + " -> ".join(cycle + [cycle[0]]))

    # --- Step 2: Write outputs ---
    print()
    print("=" * 80)
    print("STEP 2: Writing mapping outputs")
    print("=" * 80)
    print()

    outputs = []

    mapping_file = f'{base}_mapping_table.md'
    save_mapping_table(config, mapping_file)
    outputs.append(('Mapping table', mapping_file))

    if args.csv:
        csv_file = f'{base}_mapping_table.csv'
        save_mapping_csv(config, csv_file)
        outputs.append(('Mapping CSV', csv_file))

    if args.json:
        json_file = f'{base}_provenance.json'
        with open(json_file, 'w', encoding='utf-8') as f:
            json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
        outputs.append(('Provenance JSON', json_file))

    if args.graph:
        G = build_reference_graph(config)
        stats = get_graph_stats(G)
        print(f"Graph: {stats['total_nodes']} nodes, {stats['total_edges']} edges")
        graph_file = create_chain_visualization(G, f'{base}_provenance_graph.html')
        outputs.append(('Provenance graph', graph_file))

    # --- Summary ---
    print()
    print("=" * 80)
    print("PIPELINE COMPLETE")
    print("=" * 80)
    print(f"  Input file:        {args.file}")
    for label, path in outputs:
        print(f"  {label + ':':<18} {path}")
    print()


if __name__ == '__main__':
    main()
