from .solartron7150 import Solartron7150, State, integration_code, sample_frequency, setup_command

__all__ = ["Solartron7150", "State", "integration_code", "sample_frequency", "setup_command"]
