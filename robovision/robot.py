"""Differential drive mobile robot model with a laser turret."""

from __future__ import annotations

import math

PW_NEUTRAL = 1500  # pulse width at which the servos stop (us)
PW_RANGE = 500  # pulse widths are limited to PW_NEUTRAL +/- PW_RANGE
ALPHA_DOT_MAX = 3.5  # maximum laser servo speed (rad/s)
ALPHA_EPS = 0.0017  # laser angle tolerance at which the servo stops (rad)


class Robot:
    """State, inputs and outputs of one simulated robot.

    The state is the heading ``theta`` (rad), the position ``x``, ``y``
    (pixels) and the laser angle ``alpha`` (rad). Outputs are the laser /
    gripper position ``xg``, ``yg`` and the offset ``xa``, ``ya`` of the
    rotation axis from the robot image centre, both in global coordinates.
    """

    n_states = 4

    def __init__(self, x0: float, y0: float, theta0: float, vmax: float) -> None:
        self.d = 121.0  # distance between the wheels (pixels)
        self.lx = 31.0  # laser position in robot coordinates (pixels)
        self.ly = 0.0
        self.ax = 37.0  # rotation axis relative to the image centre (pixels)
        self.ay = 0.0
        self.alpha_max = 3.14159 / 2
        self.v_max = vmax

        self.t = 0.0
        self.theta = theta0
        self.x = x0
        self.y = y0
        self.alpha = 0.0

        self.vl = 0.0
        self.vr = 0.0
        self.alpha_ref = 0.0
        self.alpha_dot = 0.0
        self.laser = 0

        self.xg = self.yg = 0.0
        self.xa = self.ya = 0.0
        self.calculate_outputs()

    def sim_step(self, dt: float) -> None:
        """Advance the robot by one Euler step of ``dt`` seconds."""
        v = (self.vl + self.vr) / 2
        w = (self.vr - self.vl) / self.d

        theta_dot = w
        x_dot = v * math.cos(self.theta)
        y_dot = v * math.sin(self.theta)

        if self.alpha < self.alpha_ref:
            self.alpha_dot = ALPHA_DOT_MAX
        elif self.alpha > self.alpha_ref:
            self.alpha_dot = -ALPHA_DOT_MAX
        if abs(self.alpha - self.alpha_ref) < ALPHA_EPS:
            self.alpha_dot = 0.0
            self.alpha = self.alpha_ref

        self.theta += theta_dot * dt
        self.x += x_dot * dt
        self.y += y_dot * dt
        self.alpha += self.alpha_dot * dt
        self.t += dt

        self.calculate_outputs()

    def set_inputs(self, pw_l: int, pw_r: int, pw_laser: int, laser: int) -> None:
        """Set the servo pulse widths (us) and the laser input (0 or 1)."""
        self.laser = laser

        def clamp(pw: int) -> int:
            return min(max(pw, PW_NEUTRAL - PW_RANGE), PW_NEUTRAL + PW_RANGE)

        # the left servo is mounted flipped, hence the sign
        self.vl = -(clamp(pw_l) - PW_NEUTRAL) / PW_RANGE * self.v_max
        self.vr = (clamp(pw_r) - PW_NEUTRAL) / PW_RANGE * self.v_max
        self.alpha_ref = (clamp(pw_laser) - PW_NEUTRAL) / PW_RANGE * self.alpha_max

    def calculate_outputs(self) -> None:
        """Recompute the laser position and the rotation axis offset."""
        cos_th = math.cos(self.theta)
        sin_th = math.sin(self.theta)
        self.xg = self.x + self.lx * cos_th - self.ly * sin_th
        self.yg = self.y + self.lx * sin_th + self.ly * cos_th
        self.xa = self.ax * cos_th - self.ay * sin_th
        self.ya = self.ax * sin_th + self.ay * cos_th