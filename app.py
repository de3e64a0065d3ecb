import atexit
import json
import logging

import click
from flask import Flask

from client import ApiError, DashboardClient, ProgressTimeoutError, ProgressWatcher
from config import Config
from generation import DraftGenerator, IdeaGenerator
from models import db, ensure_temp_user
from routes import api
from scraper import ContentAnalyzer, WebCrawler, WebsiteAnalysisError, WebsiteAnalyzer
from utils.background_jobs import BackgroundJobs
from utils.github_publisher import GitHubPublisher
from utils.llm_handler import LLMHandler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _build_pipeline(config, overrides):
    """Create the collaborators shared by every request; any of them may be overridden"""
    llm_handler = overrides.get('llm_handler') or LLMHandler(
        api_key=config.get('OPENAI_API_KEY'),
        model=config['OPENAI_MODEL'],
        image_model=config['OPENAI_IMAGE_MODEL'],
    )
    web_crawler = overrides.get('web_crawler') or WebCrawler(
        timeout=config['SCRAPER_TIMEOUT'],
        delay=config['SCRAPER_REQUEST_DELAY'],
    )
    website_analyzer = overrides.get('website_analyzer') or WebsiteAnalyzer(
        web_crawler,
        ContentAnalyzer(llm_handler),
        max_pages=config['SCRAPER_MAX_PAGES'],
    )
    github_api_url = config['GITHUB_API_URL']

    return {
        'llm_handler': llm_handler,
        'website_analyzer': website_analyzer,
        'idea_generator': overrides.get('idea_generator') or IdeaGenerator(llm_handler),
        'draft_generator': overrides.get('draft_generator') or DraftGenerator(llm_handler),
        'jobs': overrides.get('jobs') or BackgroundJobs(
            max_workers=config['BACKGROUND_WORKERS'],
            synchronous=config['BACKGROUND_JOBS_SYNC'],
        ),
        'github_publisher_factory': overrides.get('github_publisher_factory') or (
            lambda token: GitHubPublisher(token, api_url=github_api_url)
        ),
    }


def register_commands(app):
    @app.cli.command('analyze')
    @click.argument('url')
    def analyze_command(url):
        """Scrape and analyze URL now and print the snapshot"""
        analyzer = app.extensions['content_pipeline']['website_analyzer']
        try:
            analysis = analyzer.analyze_website(url)
        except WebsiteAnalysisError as e:
            raise click.ClickException(str(e))
        click.echo(json.dumps(analysis.to_json(), indent=2))

    @app.cli.command('watch-scrape')
    @click.argument('website_id')
    @click.option('--server', default='http://localhost:5000', show_default=True,
                  help='Base URL of a running dashboard server.')
    @click.option('--no-trigger', is_flag=True, help='Follow a scrape that is already running.')
    def watch_scrape_command(website_id, server, no_trigger):
        """Trigger a scrape on a running server and follow it until it completes"""
        watcher = ProgressWatcher(
            DashboardClient(server),
            on_progress=lambda phase, percent: click.echo(f"[{percent:3d}%] {phase.value}"),
        )
        try:
            status = watcher.watch_scrape(website_id, trigger=not no_trigger)
        except (ProgressTimeoutError, ApiError) as e:
            raise click.ClickException(str(e))
        click.echo(json.dumps(status, indent=2))


def create_app(config_object=None, **overrides):
    """Build the app; overrides replace pipeline collaborators (used by tests)"""
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.config.update(overrides.pop('config', None) or {})
    logging.getLogger().setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)
    app.extensions['content_pipeline'] = _build_pipeline(app.config, overrides)
    # Let in-flight analyses write their results before the process exits
    atexit.register(app.extensions['content_pipeline']['jobs'].shutdown)
    app.register_blueprint(api)
    register_commands(app)

    with app.app_context():
        db.create_all()
        ensure_temp_user(app.config.get('GITHUB_TOKEN'))

    logger.info("App created")
    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
