"""A set of simulated robots sharing one arena."""

from __future__ import annotations

from dataclasses import dataclass

from .robot import Robot

N_MAX = 100
DEFAULT_WIDTH = 640
DEFAULT_HEIGHT = 480
DEFAULT_MAX_SPEED = 100.0
PI = 3.14159


@dataclass
class Obstacle:
    """An obstacle centred at (x, y) pixels; ``size`` is a scale factor."""

    x: float
    y: float
    size: float = 1.0


class RobotSystem:
    """The robot, an optional opponent and further robots, simulated together.

    ``robots[0]`` is the robot under control and ``robots[1]`` the opponent.
    """

    def __init__(
        self,
        d: float,
        lx: float,
        ly: float,
        ax: float,
        ay: float,
        alpha_max: float,
        n_robot: int,
    ) -> None:
        if not 1 <= n_robot < N_MAX:
            raise ValueError(f"number of robots must be from 1 to {N_MAX - 1}: {n_robot}")
        self.t = 0.0
        self.width = float(DEFAULT_WIDTH)
        self.height = float(DEFAULT_HEIGHT)
        self.obstacles: list[Obstacle] = []

        self.robots: list[Robot] = []
        for number in range(1, n_robot + 1):
            if number == 1:
                x0, y0, theta0 = 0.3 * self.width, 0.5 * self.height, 0.0
            elif number == 2:
                x0, y0, theta0 = 0.7 * self.width, 0.5 * self.height, PI
            else:
                x0, y0, theta0 = 0.5 * self.width, 0.5 * self.height, PI / 2
            self.robots.append(Robot(x0, y0, theta0, DEFAULT_MAX_SPEED))

        for robot in self.robots:
            robot.set_inputs(1500, 1500, 1500, 0)
            robot.d = 121.0
            robot.lx = 31.0
            robot.ly = 0.0
            robot.ax = 37.0
            robot.ay = 0.0
            robot.alpha_max = alpha_max

        main = self.robots[0]
        main.d = d
        main.lx = lx
        main.ly = ly
        main.ax = ax
        main.ay = ay
        main.alpha_max = alpha_max

        for robot in self.robots:
            robot.calculate_outputs()

        self.light = 1.0
        self.light_gradient = 0.0
        self.light_dir = 0.0
        self.image_noise = 0.0

        self.mode = 0
        self.level = 1

    @property
    def n_robot(self) -> int:
        """Number of robots in the simulation."""
        return len(self.robots)

    @property
    def robot(self) -> Robot:
        """The robot under control."""
        return self.robots[0]

    @property
    def opponent(self) -> Robot | None:
        """The opponent, or None when there is none."""
        return self.robots[1] if len(self.robots) > 1 else None

    def sim_step(self, dt: float) -> None:
        """Advance every robot and the system clock by ``dt`` seconds."""
        for robot in self.robots:
            robot.sim_step(dt)
        self.t += dt