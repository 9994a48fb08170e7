import setuptools

setuptools.setup(
    name="usability_leaderboard",
    version="0.1.0",
    description="A real-time leaderboard server for usability-testing sessions.",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "eventlet",
        "flask",
        "flask-socketio",
        "markupsafe",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-timeout>=2.3",
        ],
    },
)
