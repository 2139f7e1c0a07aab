# This file is part of clusternet. See LICENSE file for license information.

# Set and read for determining the clusternet config file location
CFG_ENV_NAME = "CLUSTERNET_CFG"

# This is expected to be a yaml formatted file
CLUSTERNET_CONFIG = "/etc/clusternet/clusternet.cfg"

# What u get if no config is provided
CFG_BUILTIN = {
    "network_conf_dir": "/etc/systemd/network/",
    "default_renderer": "networkd",
    "profile_paths": [],
    "log_cfgs": [],
    "log_basic": True,
}
