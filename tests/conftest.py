def pytest_configure(config):
    config.addinivalue_line("markers", "slow: randomized tests over many generated trees")
