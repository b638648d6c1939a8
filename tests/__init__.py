"""Test package for the cognitive trainer.

Core tests drive each task engine directly with a fake clock; headless
simulations play whole sessions through ``submit``. The shell smoke tests
use pygame's dummy video driver, so ``pytest`` runs without a display.
"""
