"""Constants for the flight simulation core."""

GRAVITY = 9.80665
SEA_LEVEL_DENSITY = 1.225  # kg/m^3
SEA_LEVEL_PRESSURE = 101325.0  # Pa
SEA_LEVEL_TEMPERATURE = 288.15  # K
AIR_GAS_CONSTANT = 287.05  # J/(kg K)

N_MOTORS = 4
SPIN_DIRECTIONS = (1.0, -1.0, 1.0, -1.0)

# IMU channel layout shared by sensor fields and controllers
GYRO_X, GYRO_Y, GYRO_Z = 0, 1, 2
ACCEL_X, ACCEL_Y, ACCEL_Z = 3, 4, 5
ALTITUDE_Z, VELOCITY_Z = 6, 7
N_IMU_CHANNELS = 6

# Seed offsets of the per-axis noise streams
NOISE_STREAM_OFFSET = 0x9E3779B97F4A7C15
WALK_STREAM_MASK = 0xBF58476D1CE4E5B9
UINT64_MASK = (1 << 64) - 1

ESTIMATOR_TIME_CONSTANT = 0.4  # s
VIBRATION_FREQ = 120.0  # Hz
