#!/usr/bin/env python3
# This file is part of clusternet. See LICENSE file for license information.

"""Compile cluster network profiles into per-node network configuration."""

import argparse
import logging
import os
import sys

from clusternet import k3s, log, profiles, safeyaml, settings, util, version
from clusternet.exceptions import ClusterNetError
from clusternet.net import (
    RendererNotFoundError,
    declarative,
    dhcp,
    equivalence,
    renderers,
)

LOG = logging.getLogger(__name__)

NAME = "clusternet"


def read_cfg(config_path=None):
    """Merge --config, the $CLUSTERNET_CFG (or system) file and builtins.

    Earlier sources take precedence.
    """
    sources = []
    if config_path:
        if not os.path.isfile(config_path):
            raise ClusterNetError("Config file not found: %s" % config_path)
        sources.append(util.read_conf(config_path))
    sources.append(
        util.read_conf(
            os.environ.get(settings.CFG_ENV_NAME, settings.CLUSTERNET_CONFIG)
        )
    )
    sources.append(settings.CFG_BUILTIN)
    return util.mergemanydict(sources)


def load_catalog(args):
    try:
        catalog = profiles.default_catalog(args.cfg)
    except ValueError as e:
        raise ClusterNetError("Can not load profile_paths: %s" % e) from e
    if args.profile_file:
        try:
            profiles.register_profile_file(catalog, args.profile_file)
        except ValueError as e:
            raise ClusterNetError(
                "Can not add %s: %s" % (args.profile_file, e)
            ) from e
    return catalog


def handle_profiles(name, args):
    catalog = load_catalog(args)
    for profile in catalog.names():
        topology = catalog.get(profile)
        print("%-16s %s" % (profile, topology.mode.value))
    return 0


def _render_declarative(r, topology, args):
    fragment = r.render(topology, args.node)
    content = safeyaml.dumps(
        declarative.fragment_to_dict(fragment),
        explicit_end=False,
        noalias=True,
    )
    if not args.directory:
        sys.stdout.write(content)
        return
    path = os.path.join(args.directory, "%s.yaml" % args.node)
    util.write_file(path, content)
    sys.stderr.write("Wrote declarative config to '%s'\n" % path)


def _render_networkd(r, topology, args):
    if args.directory:
        written = r.render_to_target(topology, args.node)
        sys.stderr.write(
            "Wrote %d networkd files to '%s'\n"
            % (len(written), r.network_conf_dir)
        )
        return
    for fn, content in r.render(topology, args.node).items():
        sys.stdout.write("# %s\n%s" % (fn, content))


def handle_render(name, args):
    topology = load_catalog(args).get(args.profile)
    try:
        output_kind, r_cls = renderers.select(
            args.output_kind or args.cfg.get("default_renderer")
        )
    except RendererNotFoundError as e:
        raise ClusterNetError(str(e)) from e
    config = {"network_conf_dir": args.cfg.get("network_conf_dir")}
    if args.directory:
        config["network_conf_dir"] = args.directory
    r = r_cls(config=config)
    LOG.debug(
        "Rendering %s for %s of %s", output_kind, args.node, args.profile
    )
    if output_kind == "declarative":
        _render_declarative(r, topology, args)
    else:
        _render_networkd(r, topology, args)
    return 0


def handle_flags(name, args):
    topology = load_catalog(args).get(args.profile)
    try:
        flags = k3s.derive_flags(topology, args.node, args.role)
    except ValueError as e:
        raise ClusterNetError(str(e)) from e
    if args.role == k3s.ROLE_SERVER and args.cidrs:
        flags.extend(k3s.derive_cidr_flags(topology))
    for flag in flags:
        print(flag)
    return 0


def handle_check(name, args):
    topology = load_catalog(args).get(args.profile)
    if args.node:
        graphs = {
            args.node: equivalence.check_equivalence(topology, args.node)
        }
    else:
        graphs = equivalence.verify_all(topology)
    for node, graph in graphs.items():
        print(
            "%s: renderers agree (%d devices, %d bindings)"
            % (node, len(graph.devices), len(graph.bindings))
        )
    return 0


def handle_dhcp_hosts(name, args):
    topology = load_catalog(args).get(args.profile)
    if args.full:
        sys.stdout.write(dhcp.dnsmasq_config(topology))
    else:
        for entry in dhcp.dnsmasq_host_entries(topology):
            print(entry)
    return 0


def handle_features(name, args):
    print("\n".join(sorted(version.FEATURES)))
    return 0


def _add_profile_arg(parser):
    parser.add_argument(
        "-p",
        "--profile",
        required=True,
        help="Name of the network profile to use",
    )


def get_parser(parser=None):
    """Build the top level parser with one subparser per action.

    @returns: ArgumentParser with proper argument configuration.
    """
    if not parser:
        parser = argparse.ArgumentParser(prog=NAME, description=__doc__)
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version="%(prog)s " + (version.version_string()),
        help="Show program's version number and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug logging to stderr (default: %(default)s).",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="YAML config file read before $%s" % settings.CFG_ENV_NAME,
    )
    parser.add_argument(
        "--profile-file",
        metavar="PATH",
        help="Additional YAML or JSON profile to add to the catalog",
    )
    subparsers = parser.add_subparsers(title="Subcommands", dest="subcommand")
    subparsers.required = True

    parser_profiles = subparsers.add_parser(
        "profiles", help="List the known profiles and their mode."
    )
    parser_profiles.set_defaults(action=("profiles", handle_profiles))

    parser_render = subparsers.add_parser(
        "render", help="Render the network configuration of one node."
    )
    _add_profile_arg(parser_render)
    parser_render.add_argument(
        "-n", "--node", required=True, help="Node to render"
    )
    parser_render.add_argument(
        "-O",
        "--output-kind",
        choices=sorted(renderers.NAME_TO_RENDERER),
        help="The network config format to emit (default from config)",
    )
    parser_render.add_argument(
        "-d",
        "--directory",
        metavar="PATH",
        help="directory to place output in instead of stdout",
    )
    parser_render.set_defaults(action=("render", handle_render))

    parser_flags = subparsers.add_parser(
        "flags", help="Print the k3s flags of one node."
    )
    _add_profile_arg(parser_flags)
    parser_flags.add_argument(
        "-n", "--node", required=True, help="Node to derive flags for"
    )
    parser_flags.add_argument(
        "-r", "--role", required=True, choices=list(k3s.ROLES)
    )
    parser_flags.add_argument(
        "--cidrs",
        action="store_true",
        default=False,
        help="Append --cluster-cidr/--service-cidr for servers.",
    )
    parser_flags.set_defaults(action=("flags", handle_flags))

    parser_check = subparsers.add_parser(
        "check", help="Verify both renderers agree for a profile."
    )
    _add_profile_arg(parser_check)
    parser_check.add_argument(
        "-n", "--node", help="Only check this node (default: all nodes)"
    )
    parser_check.set_defaults(action=("check", handle_check))

    parser_dhcp = subparsers.add_parser(
        "dhcp-hosts", help="Print dnsmasq reservations of a DHCP profile."
    )
    _add_profile_arg(parser_dhcp)
    parser_dhcp.add_argument(
        "--full",
        action="store_true",
        default=False,
        help="Print the complete dnsmasq configuration.",
    )
    parser_dhcp.set_defaults(action=("dhcp-hosts", handle_dhcp_hosts))

    parser_features = subparsers.add_parser(
        "features", help="List defined features."
    )
    parser_features.set_defaults(action=("features", handle_features))
    return parser


def sub_main(args):
    # Subparsers.required = True and each subparser sets action=(name, functor)
    (name, functor) = args.action
    try:
        args.cfg = read_cfg(args.config)
        if args.debug:
            log.setup_basic_logging(logging.DEBUG)
        else:
            log.setup_logging(args.cfg, logging.WARNING)
        return functor(name, args)
    except ClusterNetError as e:
        LOG.debug("%s failed", name, exc_info=True)
        sys.stderr.write("ERROR: %s\n" % e)
        return 1


def main(sysv_args=None):
    if sysv_args is None:
        sysv_args = sys.argv[1:]
    parser = get_parser()
    args = parser.parse_args(args=sysv_args)
    return sub_main(args)


if __name__ == "__main__":
    sys.exit(main())
