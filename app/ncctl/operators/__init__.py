"""Operators wrapping the external tools ncctl drives.

Each operator is a thin layer over :class:`ncctl.core.runner.ProcessRunner`
for one external tool: apt-get/dpkg, systemctl and Nextcloud's occ.
"""

from ncctl.operators.apt import AptOperator
from ncctl.operators.occ import Occ
from ncctl.operators.systemd import SystemdOperator

__all__ = ["AptOperator", "Occ", "SystemdOperator"]
