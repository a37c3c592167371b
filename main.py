from dotenv import load_dotenv

from core.bot import RaincoatBot
from core.config import load_config
from core.logger import get_logger, setup_logging


logger = get_logger("raincoat")


def main() -> None:
    load_dotenv()
    config = load_config()
    setup_logging(config.log_level, config.log_file)
    logger.info("Loaded configuration: %s", config.sanitize())
    bot = RaincoatBot(config)
    bot.run(config.token, log_handler=None)


if __name__ == "__main__":
    main()
