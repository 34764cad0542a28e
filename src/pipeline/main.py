"""
Entry point for the video transcriber web service.

Loads configuration from the environment and serves server.app under uvicorn.
"""

import logging

import uvicorn

from pipeline.config import PipelineConfig

logger = logging.getLogger(__name__)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = PipelineConfig.from_env()
    logger.info(f"Starting video transcriber on {config.host}:{config.port} ({config.transcription_mode} mode)")
    uvicorn.run("server.app:app", host=config.host, port=config.port)


if __name__ == "__main__":
    main()
