import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

from flask import Blueprint, current_app, jsonify, request
from pydantic import Field, ValidationError, field_validator

from generation.schemas import sanitize_keyword_density
from models import (
    ArticleIdea, Draft, GenerationHistory, Website, db, ensure_temp_user, record_history, utcnow,
)
from scraper.schemas import CamelModel
from utils.background_jobs import JobAlreadyRunning
from utils.llm_handler import LLMConfigurationError

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


def _blank_to_none(value):
    return None if value == '' else value


class WebsiteCreate(CamelModel):
    name: str = Field(min_length=1)
    url: str
    keywords: List[str] = Field(default_factory=list)
    tone: Optional[str] = None
    audience: Optional[str] = None
    status: Literal['active', 'paused', 'error'] = 'active'
    github_repo: Optional[str] = None
    github_branch: str = 'main'
    github_path: str = 'blog'
    cta_text: Optional[str] = None
    cta_url: Optional[str] = None
    min_word_count: Optional[int] = Field(default=None, ge=0)
    max_word_count: Optional[int] = Field(default=None, ge=0)

    @field_validator('tone', 'audience', 'github_repo', 'cta_text', 'cta_url', mode='before')
    @classmethod
    def _optional_text(cls, value):
        return _blank_to_none(value)

    @field_validator('url')
    @classmethod
    def _url(cls, value):
        if value is None:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError('must be an http(s) URL')
        return value


class WebsiteUpdate(WebsiteCreate):
    name: Optional[str] = Field(default=None, min_length=1)
    url: Optional[str] = None
    keywords: Optional[List[str]] = None
    status: Optional[Literal['active', 'paused', 'error']] = None
    github_branch: Optional[str] = None
    github_path: Optional[str] = None
    next_scheduled: Optional[datetime] = None

    # Omitting these leaves them unchanged; they cannot be cleared
    @field_validator('name', 'url', 'keywords', 'status', 'github_branch', 'github_path', mode='before')
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError('may not be null')
        return value


class IdeaUpdate(CamelModel):
    headline: Optional[str] = None
    keywords: Optional[List[str]] = None
    status: Optional[Literal['pending', 'approved', 'rejected']] = None
    priority: Optional[int] = None
    scheduled_date: Optional[datetime] = None


class DraftUpdate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    word_count: Optional[int] = Field(default=None, ge=0)
    readability_score: Optional[int] = Field(default=None, ge=0, le=100)
    keyword_density: Optional[Any] = None
    status: Optional[Literal['draft', 'review', 'pr_created', 'merged']] = None
    pr_url: Optional[str] = None
    frontmatter: Optional[Dict[str, Any]] = None
    image_url: Optional[str] = None

    @field_validator('keyword_density')
    @classmethod
    def _density(cls, value):
        return sanitize_keyword_density(value)


def _pipeline(name):
    return current_app.extensions['content_pipeline'][name]


def _validation_error(e):
    return jsonify({'error': 'Invalid request', 'details': json.loads(e.json(include_url=False))}), 400


def _temp_user():
    return ensure_temp_user(current_app.config.get('GITHUB_TOKEN'))


def _save_analysis(website_id, analysis):
    website = db.session.get(Website, website_id)
    if website is None:
        logger.warning(f"Website {website_id} was deleted before its analysis finished")
        return

    content = analysis.analyzed_content
    website.scraped_data = content.to_json()
    website.last_scraped = analysis.scraped_at
    if content.cta:
        website.cta_text = content.cta.text
        website.cta_url = content.cta.url
    db.session.commit()

    logger.info(
        f"Scraping complete for {website_id}: {len(content.faqs)} FAQs, "
        f"{len(content.key_topics)} key topics, "
        f"{len(content.seo_insights.primary_keywords)} primary keywords"
    )
    record_history(
        website_id, 'Website Scraped', 'success',
        extra={'faqsCount': len(content.faqs), 'keyTopicsCount': len(content.key_topics)},
    )


def _record_analysis_failure(website_id, error):
    if db.session.get(Website, website_id) is None:
        return
    record_history(website_id, 'Website Scrape', 'failed', error_message=str(error))


def start_site_analysis(website):
    """Submit the scrape -> analyze pipeline for a website and return immediately.

    The result is written back to the website record by the completion
    callback; raises JobAlreadyRunning if this website is already being analyzed.
    """
    app = current_app._get_current_object()
    website_id, url = website.id, website.url

    def on_success(analysis):
        with app.app_context():
            _save_analysis(website_id, analysis)

    def on_error(error):
        with app.app_context():
            _record_analysis_failure(website_id, error)

    return _pipeline('jobs').submit(
        f"analyze:{website_id}",
        _pipeline('website_analyzer').analyze_website,
        url,
        on_success=on_success,
        on_error=on_error,
    )


# Website routes
@api.route('/websites', methods=['GET'])
def list_websites():
    try:
        user = _temp_user()
        websites = db.session.execute(
            db.select(Website).filter_by(user_id=user.id).order_by(Website.created_at.desc())
        ).scalars().all()
        return jsonify([website.to_dict() for website in websites])
    except Exception as e:
        logger.error(f"Error fetching websites: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to fetch websites', 'details': str(e)}), 500


@api.route('/websites/<website_id>', methods=['GET'])
def get_website(website_id):
    website = db.session.get(Website, website_id)
    if website is None:
        return jsonify({'error': 'Website not found'}), 404
    return jsonify(website.to_dict())


@api.route('/websites', methods=['POST'])
def create_website():
    try:
        data = WebsiteCreate.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    try:
        website = Website(user_id=_temp_user().id, **data.model_dump(exclude_none=True))
        db.session.add(website)
        db.session.commit()
        logger.info(f"Created website {website.id} ({website.url})")
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating website: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to create website', 'details': str(e)}), 500

    # A failed auto-scrape never fails the creation itself
    try:
        logger.info(f"Starting auto-scraping for newly added website: {website.id}")
        start_site_analysis(website)
    except Exception as e:
        logger.error(f"Failed to start auto-scraping for {website.id}: {str(e)}", exc_info=True)

    db.session.refresh(website)
    return jsonify(website.to_dict()), 201


@api.route('/websites/<website_id>', methods=['PATCH'])
def update_website(website_id):
    website = db.session.get(Website, website_id)
    if website is None:
        return jsonify({'error': 'Website not found'}), 404
    try:
        changes = WebsiteUpdate.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    try:
        for field, value in changes.model_dump(exclude_unset=True).items():
            setattr(website, field, value)
        db.session.commit()
        return jsonify(website.to_dict())
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating website: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to update website', 'details': str(e)}), 500


@api.route('/websites/<website_id>', methods=['DELETE'])
def delete_website(website_id):
    website = db.session.get(Website, website_id)
    if website is None:
        return jsonify({'error': 'Website not found'}), 404
    try:
        db.session.delete(website)
        db.session.commit()
        return jsonify({'success': True})
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting website: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to delete website', 'details': str(e)}), 500


@api.route('/websites/<website_id>/scrape', methods=['POST'])
def trigger_scrape(website_id):
    """Start a (re)scrape in the background; progress is observed via scraping-status"""
    website = db.session.get(Website, website_id)
    if website is None:
        return jsonify({'error': 'Website not found'}), 404

    logger.info(f"Manually triggering scrape for: {website.name} ({website.url})")
    ack = {
        'message': 'Scraping started in background. Poll the scraping status for completion.',
        'websiteId': website.id,
        'url': website.url,
        'name': website.name,
    }
    try:
        start_site_analysis(website)
    except JobAlreadyRunning:
        return jsonify({'error': 'Scraping already in progress', **ack}), 409
    except Exception as e:
        logger.error(f"Error triggering scrape: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to trigger scraping', 'details': str(e)}), 500
    return jsonify(ack), 202


@api.route('/websites/<website_id>/scraping-status', methods=['GET'])
def scraping_status(website_id):
    website = db.session.get(Website, website_id)
    if website is None:
        return jsonify({'error': 'Website not found'}), 404
    return jsonify(website.scraping_status())


# Article idea routes
@api.route('/websites/<website_id>/ideas', methods=['GET'])
def list_ideas(website_id):
    query = db.select(ArticleIdea).filter_by(website_id=website_id)
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    ideas = db.session.execute(query.order_by(ArticleIdea.created_at.desc())).scalars().all()
    return jsonify([idea.to_dict() for idea in ideas])


@api.route('/websites/<website_id>/generate-ideas', methods=['POST'])
def generate_ideas(website_id):
    website = db.session.get(Website, website_id)
    if website is None:
        return jsonify({'error': 'Website not found'}), 404

    body = request.get_json(silent=True) or {}
    count = body.get('count')
    if count is None:
        count = current_app.config['DEFAULT_IDEA_COUNT']
    if not isinstance(count, int) or isinstance(count, bool) or not 1 <= count <= 20:
        return jsonify({'error': 'Invalid request', 'details': 'count must be an integer between 1 and 20'}), 400

    try:
        generated = _pipeline('idea_generator').generate_ideas(website, count)
        ideas = []
        for idea in generated:
            row = ArticleIdea(
                website_id=website.id,
                headline=idea.headline,
                confidence=idea.confidence,
                keywords=idea.keywords,
                estimated_words=idea.estimated_words,
                seo_score=idea.seo_score,
            )
            db.session.add(row)
            ideas.append(row)
        website.last_generated = utcnow()
        db.session.commit()

        record_history(website.id, 'Ideas Generated', 'success', article_title=f"{len(ideas)} new ideas")
        return jsonify([idea.to_dict() for idea in ideas])
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error generating ideas: {str(e)}", exc_info=True)
        record_history(website_id, 'Ideas Generation', 'failed', error_message=str(e))
        if isinstance(e, LLMConfigurationError):
            return jsonify({'error': 'AI provider not configured', 'details': str(e)}), 503
        return jsonify({'error': 'Failed to generate ideas', 'details': str(e)}), 500


@api.route('/ideas/<idea_id>', methods=['PATCH'])
def update_idea(idea_id):
    idea = db.session.get(ArticleIdea, idea_id)
    if idea is None:
        return jsonify({'error': 'Idea not found'}), 404
    try:
        changes = IdeaUpdate.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(idea, field, value)
    db.session.commit()
    return jsonify(idea.to_dict())


@api.route('/ideas/<idea_id>', methods=['DELETE'])
def delete_idea(idea_id):
    idea = db.session.get(ArticleIdea, idea_id)
    if idea is not None:
        db.session.delete(idea)
        db.session.commit()
    return jsonify({'success': True})


# Draft routes
@api.route('/websites/<website_id>/drafts', methods=['GET'])
def list_drafts(website_id):
    query = db.select(Draft).filter_by(website_id=website_id)
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    drafts = db.session.execute(query.order_by(Draft.created_at.desc())).scalars().all()
    return jsonify([draft.to_dict() for draft in drafts])


@api.route('/ideas/<idea_id>/generate-draft', methods=['POST'])
def generate_draft(idea_id):
    idea = db.session.get(ArticleIdea, idea_id)
    if idea is None:
        return jsonify({'error': 'Idea not found'}), 404
    website = idea.website
    if website is None:
        return jsonify({'error': 'Website not found'}), 404

    try:
        generated = _pipeline('draft_generator').generate_draft(
            idea.headline, website, idea.keywords or [], idea.estimated_words,
        )
        draft = Draft(
            article_idea_id=idea.id,
            website_id=website.id,
            title=generated.title,
            content=generated.content,
            excerpt=generated.excerpt,
            word_count=generated.word_count,
            readability_score=generated.readability_score,
            keyword_density=generated.keyword_density,
            frontmatter=generated.frontmatter,
            image_url=generated.image_url,
        )
        db.session.add(draft)
        website.last_generated = utcnow()
        db.session.commit()

        record_history(website.id, 'Draft Created', 'success', article_title=draft.title)
        return jsonify(draft.to_dict())
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error generating draft: {str(e)}", exc_info=True)
        record_history(website.id, 'Draft Generation', 'failed', article_title=idea.headline, error_message=str(e))
        if isinstance(e, LLMConfigurationError):
            return jsonify({'error': 'AI provider not configured', 'details': str(e)}), 503
        return jsonify({'error': 'Failed to generate draft', 'details': str(e)}), 500


@api.route('/drafts/<draft_id>', methods=['PATCH'])
def update_draft(draft_id):
    draft = db.session.get(Draft, draft_id)
    if draft is None:
        return jsonify({'error': 'Draft not found'}), 404
    try:
        changes = DraftUpdate.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    updates = changes.model_dump(exclude_unset=True)
    if updates.get('status') == 'merged' and draft.status != 'merged':
        draft.website.total_articles = (draft.website.total_articles or 0) + 1
    for field, value in updates.items():
        setattr(draft, field, value)
    db.session.commit()
    return jsonify(draft.to_dict())


@api.route('/drafts/<draft_id>/push-to-github', methods=['POST'])
def push_to_github(draft_id):
    draft = db.session.get(Draft, draft_id)
    if draft is None:
        return jsonify({'error': 'Draft not found'}), 404
    website = draft.website

    user = _temp_user()
    if not user.github_token:
        return jsonify({'error': 'GitHub token not configured'}), 400

    try:
        publisher = _pipeline('github_publisher_factory')(user.github_token)
        pr_url = publisher.create_pull_request(draft, website)

        draft.status = 'pr_created'
        draft.pr_url = pr_url
        db.session.commit()

        record_history(website.id, 'PR Created', 'success', article_title=draft.title, pr_url=pr_url)
        return jsonify(draft.to_dict())
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error pushing to GitHub: {str(e)}", exc_info=True)
        record_history(website.id, 'PR Creation', 'failed', article_title=draft.title, error_message=str(e))
        return jsonify({'error': 'Failed to push to GitHub', 'details': str(e)}), 500


@api.route('/drafts/<draft_id>', methods=['DELETE'])
def delete_draft(draft_id):
    draft = db.session.get(Draft, draft_id)
    if draft is not None:
        db.session.delete(draft)
        db.session.commit()
    return jsonify({'success': True})


# History routes
@api.route('/websites/<website_id>/history', methods=['GET'])
def list_history(website_id):
    limit = request.args.get('limit', default=50, type=int)
    entries = db.session.execute(
        db.select(GenerationHistory)
        .filter_by(website_id=website_id)
        .order_by(GenerationHistory.created_at.desc())
        .limit(limit)
    ).scalars().all()
    return jsonify([entry.to_dict() for entry in entries])


def _month_start(now, months_back=0):
    year, month = now.year, now.month - months_back
    while month < 1:
        month += 12
        year -= 1
    return datetime(year, month, 1, tzinfo=timezone.utc)


@api.route('/stats', methods=['GET'])
def stats():
    try:
        user = _temp_user()
        now = utcnow()
        this_month = _month_start(now)
        last_month = _month_start(now, 1)

        def count(model, *criteria):
            return db.session.execute(
                db.select(db.func.count()).select_from(model).join(Website).where(
                    Website.user_id == user.id, *criteria
                )
            ).scalar_one()

        active_websites = db.session.execute(
            db.select(db.func.count()).select_from(Website).where(
                Website.user_id == user.id, Website.status == 'active'
            )
        ).scalar_one()

        return jsonify({
            'activeWebsites': active_websites,
            'pendingApprovals': count(ArticleIdea, ArticleIdea.status == 'pending'),
            'publishedThisMonth': count(
                GenerationHistory, GenerationHistory.action == 'PR Created',
                GenerationHistory.created_at >= this_month,
            ),
            'lastMonthPublished': count(
                GenerationHistory, GenerationHistory.action == 'PR Created',
                GenerationHistory.created_at >= last_month, GenerationHistory.created_at < this_month,
            ),
            'thisMonthApprovedIdeas': count(
                ArticleIdea, ArticleIdea.status == 'approved', ArticleIdea.created_at >= this_month,
            ),
            'lastMonthApprovedIdeas': count(
                ArticleIdea, ArticleIdea.status == 'approved',
                ArticleIdea.created_at >= last_month, ArticleIdea.created_at < this_month,
            ),
        })
    except Exception as e:
        logger.error(f"Error fetching stats: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to fetch stats', 'details': str(e)}), 500
