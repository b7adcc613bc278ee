"""Boot-time network services for the microkernel."""
