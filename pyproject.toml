[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "headtrack"
version = "0.1.0"
description = "Head orientation tracking from gyroscope and accelerometer samples with an extended Kalman filter"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "imu",
    "sensor-fusion",
    "kalman-filter",
    "head-tracking",
    "gyroscope",
    "accelerometer",
    "orientation",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Human Machine Interfaces",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["headtrack"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
