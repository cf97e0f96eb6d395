"""CAPTCHA solving service clients."""

from radar_engine.infrastructure.captcha.captcha_solver import CaptchaSolver

__all__ = ["CaptchaSolver"]
