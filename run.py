import subprocess
import sys
import time
from threading import Thread
import signal
import psutil
import logging
from nexbot.discord_bot import bot
from nexbot.config.settings import DISCORD_BOT_TOKEN

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_api():
    """Run the chat API server"""
    try:
        logger.info("Starting chat API server...")
        subprocess.run([sys.executable, "-m", "uvicorn", "nexbot.backend:app"], check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"Chat API server error: {e}")


def run_discord_bot():
    """Run the Discord bot"""
    if not DISCORD_BOT_TOKEN:
        logger.warning("DISCORD_BOT_TOKEN not set, serving the chat API only")
        while True:
            time.sleep(3600)
    logger.info("Starting Discord bot...")
    bot.run(DISCORD_BOT_TOKEN)


def cleanup():
    """Clean up processes on exit"""
    logger.info("Cleaning up processes...")
    current_process = psutil.Process()
    children = current_process.children(recursive=True)
    for child in children:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass


if __name__ == "__main__":
    signal.signal(signal.SIGINT, lambda s, f: (cleanup(), sys.exit(0)))
    signal.signal(signal.SIGTERM, lambda s, f: (cleanup(), sys.exit(0)))

    try:
        api_thread = Thread(target=run_api)
        api_thread.daemon = True  # Thread will exit when main program exits
        api_thread.start()

        # Give the API server time to start
        logger.info("Waiting for chat API server to start...")
        time.sleep(5)

        run_discord_bot()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        cleanup()
    except Exception as e:
        logger.error(f"Error: {e}")
        cleanup()
        sys.exit(1)
