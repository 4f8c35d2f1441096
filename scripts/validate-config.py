#!/usr/bin/env python3
import ipaddress
import re
import sys

from k3sbootstrap.exceptions import ConfigError
from k3sbootstrap.modules.inventory import load_cluster_config


def fail(msg):
    print(f"❌ {msg}")
    sys.exit(1)


if len(sys.argv) != 2:
    fail("Usage: validate-config.py <path/to/cluster-config.env>")

try:
    cluster = load_cluster_config(sys.argv[1])
except ConfigError as e:
    fail(str(e))

# Kubernetes registers nodes under lowercase names
hostname_re = re.compile(r"^[a-z0-9-]+$")
for node in cluster.nodes:
    if not hostname_re.match(node.name):
        print(f"⚠️  Hostname {node.name} is not lowercase alphanumeric/hyphen; Kubernetes will register it lowercased.")

# All addresses must share the configured subnet
prefix = cluster.network.prefix
networks = {ipaddress.IPv4Interface(f"{node.address}/{prefix}").network for node in cluster.nodes}
if len(networks) > 1:
    fail(f"Not all node addresses are in the same /{prefix} subnet")
if cluster.network.gateway:
    if ipaddress.IPv4Address(cluster.network.gateway) not in next(iter(networks)):
        fail(f"Gateway {cluster.network.gateway} is outside {next(iter(networks))}")

# Embedded etcd needs an odd number of servers to keep quorum
masters = len(cluster.masters)
if masters > 1 and masters % 2 == 0:
    print(f"⚠️  {masters} masters: an even number of etcd members does not add fault tolerance.")

if cluster.rancher_replicas > len(cluster.nodes):
    print(f"⚠️  RANCHER_REPLICAS={cluster.rancher_replicas} exceeds the {len(cluster.nodes)} node(s) in the cluster.")

print("✅ cluster config validation passed.")
