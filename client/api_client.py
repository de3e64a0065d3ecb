import logging

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class DashboardClient:
    """Thin requests wrapper over the dashboard's /api routes"""

    def __init__(self, base_url, session=None, timeout=30):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}/api{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Request to {url} failed: {str(e)}") from e

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get('error') or f"{response.status_code} {response.reason}"
            raise ApiError(message, status_code=response.status_code, details=body.get('details'))
        return response.json()

    # Websites
    def list_websites(self):
        return self._request('GET', '/websites')

    def get_website(self, website_id):
        return self._request('GET', f'/websites/{website_id}')

    def create_website(self, name, url, **fields):
        return self._request('POST', '/websites', json={'name': name, 'url': url, **fields})

    def update_website(self, website_id, **fields):
        return self._request('PATCH', f'/websites/{website_id}', json=fields)

    def delete_website(self, website_id):
        return self._request('DELETE', f'/websites/{website_id}')

    def trigger_scrape(self, website_id):
        return self._request('POST', f'/websites/{website_id}/scrape')

    def scraping_status(self, website_id):
        return self._request('GET', f'/websites/{website_id}/scraping-status')

    # Ideas
    def list_ideas(self, website_id, status=None):
        params = {'status': status} if status else None
        return self._request('GET', f'/websites/{website_id}/ideas', params=params)

    def generate_ideas(self, website_id, count=None):
        body = {'count': count} if count else {}
        return self._request('POST', f'/websites/{website_id}/generate-ideas', json=body)

    def update_idea(self, idea_id, **fields):
        return self._request('PATCH', f'/ideas/{idea_id}', json=fields)

    def approve_idea(self, idea_id, generate_draft=True):
        """Approve an idea and, by convention, write its draft straight away.

        Returns (idea, draft); draft is None when generate_draft is False.
        """
        idea = self.update_idea(idea_id, status='approved')
        draft = None
        if generate_draft:
            logger.info(f"Idea {idea_id} approved, generating draft")
            draft = self.generate_draft(idea_id)
        return idea, draft

    def reject_idea(self, idea_id):
        return self.update_idea(idea_id, status='rejected')

    # Drafts
    def list_drafts(self, website_id, status=None):
        params = {'status': status} if status else None
        return self._request('GET', f'/websites/{website_id}/drafts', params=params)

    def generate_draft(self, idea_id):
        return self._request('POST', f'/ideas/{idea_id}/generate-draft')

    def update_draft(self, draft_id, **fields):
        return self._request('PATCH', f'/drafts/{draft_id}', json=fields)

    def push_to_github(self, draft_id):
        return self._request('POST', f'/drafts/{draft_id}/push-to-github')

    def history(self, website_id, limit=50):
        return self._request('GET', f'/websites/{website_id}/history', params={'limit': limit})

    def stats(self):
        return self._request('GET', '/stats')
