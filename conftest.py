def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: runs against the real clock for about a second"
    )
