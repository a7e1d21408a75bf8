"""
launch the api monitoring service
"""
from api_monitoring.main import run

if __name__ == "__main__":
    run()
