"""
Microkernel Init - Network bring-up for the provisioning microkernel

Waits for a usable network interface during early boot and discovers
the provisioning server the microkernel should report to.
"""

__version__ = "1.0.0"
__author__ = "Penguin Tech Inc"
