# Site scrapers
