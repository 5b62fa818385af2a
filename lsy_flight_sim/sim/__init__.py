"""Deterministic rigid-body simulation of quadrotor and single-rotor platforms.

The simulation is built around a single :class:`~.state.WorldStore` that owns the rigid-body state,
the motor thrusts and the external disturbances of one run. Its components are:

* Plant engines that integrate the rigid-body dynamics with a 4th-order Runge-Kutta scheme
* Actuator engines that model first-order motor lag, thrust limits and injected faults
* Sensor fields that synthesize noisy, delayed and faulted IMU samples with seeded noise
* A disturbance field for time-windowed external forces and torques

All randomness is seeded, so two runs with identical configs and seeds produce identical logs. The
:class:`~.sim.Simulation` wires the components into the per-tick control loop and records a log
that can be certified with the replay checker.
"""
