"""
Control module: single-axis PID channel used by the guidance loop.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


class PIDController:
    """
    Single-axis regulator: proportional, optional integral and low-pass filtered
    derivative terms, clamped to [min_output, max_output].
    Configuration is set once; reset() clears runtime memory only.
    """

    def __init__(self):
        self.max_output = 0.0
        self.min_output = 0.0
        self.kp = 0.0
        self.ki = 0.0
        self.kd = 0.0
        self.filter_constant = 0.0
        self.reset()

    def configure(
        self,
        max_output: float,
        min_output: float,
        proportional_gain: float,
        derivative_gain: float,
        filter_constant: float,
        integral_gain: float = 0.0,
    ) -> None:
        if max_output < min_output:
            raise ValueError("max_output must be >= min_output")
        if filter_constant < 0.0:
            raise ValueError("filter_constant must be non-negative")
        self.max_output = float(max_output)
        self.min_output = float(min_output)
        self.kp = float(proportional_gain)
        self.kd = float(derivative_gain)
        self.ki = float(integral_gain)
        self.filter_constant = float(filter_constant)

    def reset(self) -> None:
        """Clear integral and derivative state."""
        self._integral = 0.0
        self._derivative = 0.0
        self._prev_error: Optional[float] = None

    def calculate(self, elapsed_seconds: float, setpoint: float, measurement: float) -> float:
        """
        Compute the bounded output for the error setpoint - measurement.
        Non-positive elapsed time drops the derivative term for this call and
        leaves the runtime state untouched.
        """
        error = setpoint - measurement
        dt = float(elapsed_seconds)

        d_term = 0.0
        if dt > 0.0:
            self._integral += error * dt
            # First sample after reset has no history to differentiate against
            if self._prev_error is not None:
                raw = (error - self._prev_error) / dt
                alpha = dt / (self.filter_constant + dt)
                self._derivative += alpha * (raw - self._derivative)
                d_term = self.kd * self._derivative
            self._prev_error = error

        output = self.kp * error + self.ki * self._integral + d_term
        return float(np.clip(output, self.min_output, self.max_output))
