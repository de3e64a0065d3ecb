import base64
import logging
import re
import time

import requests

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = 'main'
DEFAULT_PATH = 'blog'
REF_ATTEMPTS = 3


class GitHubError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


def normalize_repo(repo_string):
    """Return (owner, repo) from the formats people paste into the settings form, or None"""
    if not repo_string or not isinstance(repo_string, str):
        return None

    normalized = re.sub(r'\.git$', '', repo_string.strip())

    if 'github.com' in normalized:
        match = re.search(r'github\.com[/:]([^/]+)/([^/]+?)(?:/|$|\.git)', normalized)
        if match:
            return match.group(1), match.group(2)

    if normalized.startswith('git@'):
        match = re.match(r'git@[^:]+:([^/]+)/(.+)', normalized)
        if match:
            return match.group(1), match.group(2)

    parts = [part for part in normalized.split('/') if part]
    if len(parts) >= 2:
        return parts[0], parts[1]

    parts = normalized.split()
    if len(parts) == 2:
        return parts[0], parts[1]

    return None


def slugify(text):
    slug = re.sub(r'[^\w\s-]', '', text.lower())
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'--+', '-', slug)
    return slug.strip()


def render_frontmatter(draft):
    fields = {
        'title': draft.title,
        'description': draft.excerpt,
        'date': draft.created_at.strftime('%Y-%m-%d') if draft.created_at else time.strftime('%Y-%m-%d'),
    }
    fields.update(draft.frontmatter or {})

    lines = []
    for key, value in fields.items():
        if isinstance(value, list):
            lines.append(f"{key}:")
            lines.extend(f"  - {item}" for item in value)
        elif isinstance(value, str) and '\n' in value:
            lines.append(f"{key}: |")
            lines.extend(f"  {line}" for line in value.split('\n'))
        elif isinstance(value, str):
            escaped = value.replace('"', '\\"')
            lines.append(f'{key}: "{escaped}"')
        elif isinstance(value, bool):
            lines.append(f"{key}: {str(value).lower()}")
        else:
            lines.append(f"{key}: {value}")
    return '\n'.join(lines)


class GitHubPublisher:
    """Opens a pull request adding a draft as an MDX file"""

    def __init__(self, token, api_url='https://api.github.com', session=None, sleep=time.sleep):
        self.api_url = api_url.rstrip('/')
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Accept': 'application/vnd.github+json',
            'X-GitHub-Api-Version': '2022-11-28',
        })
        self.sleep = sleep

    def _request(self, method, path, **kwargs):
        try:
            response = self.session.request(method, f"{self.api_url}{path}", timeout=30, **kwargs)
        except requests.exceptions.RequestException as e:
            raise GitHubError(f"GitHub request failed: {str(e)}") from e
        if response.status_code >= 400:
            try:
                message = response.json().get('message', response.reason)
            except ValueError:
                message = response.reason
            raise GitHubError(
                f"GitHub API {method} {path} failed: {response.status_code} {message}",
                status_code=response.status_code,
            )
        return response.json() if response.content else {}

    def _authenticated_login(self):
        return self._request('GET', '/user')['login']

    def ensure_repository(self, owner, repo, website):
        try:
            self._request('GET', f'/repos/{owner}/{repo}')
            return
        except GitHubError as e:
            if e.status_code != 404:
                raise

        logger.info(f"Repository {owner}/{repo} not found, creating it")
        payload = {
            'name': repo,
            'description': f"Blog repository for {website.name}",
            'private': False,
            'auto_init': True,
        }
        try:
            if owner.lower() == self._authenticated_login().lower():
                self._request('POST', '/user/repos', json=payload)
            else:
                self._request('POST', f'/orgs/{owner}/repos', json=payload)
        except GitHubError as e:
            if e.status_code == 403:
                raise GitHubError(
                    f'Cannot create repository "{owner}/{repo}". Check that the token has the "repo" '
                    f'scope and permission to create repositories for "{owner}".',
                    status_code=403,
                ) from e
            if e.status_code == 422:
                raise GitHubError(
                    f'Cannot create repository "{owner}/{repo}". The name may already exist or be invalid.',
                    status_code=422,
                ) from e
            raise

        # Give GitHub a moment to initialise the default branch
        self.sleep(2)

    def _base_sha(self, owner, repo, branch):
        for attempt in range(REF_ATTEMPTS):
            try:
                ref = self._request('GET', f'/repos/{owner}/{repo}/git/ref/heads/{branch}')
                return ref['object']['sha']
            except GitHubError as e:
                if e.status_code == 404 and attempt < REF_ATTEMPTS - 1:
                    self.sleep(1)
                    continue
                if e.status_code == 404:
                    raise GitHubError(
                        f'Branch "{branch}" not found in repository "{owner}/{repo}". '
                        f'Verify the branch name (common names are main, master, develop).',
                        status_code=404,
                    ) from e
                raise

    def create_pull_request(self, draft, website):
        if not website.github_repo:
            raise GitHubError("GitHub repository not configured for this website")

        repo_info = normalize_repo(website.github_repo)
        if not repo_info:
            raise GitHubError(
                f'Invalid GitHub repository format: "{website.github_repo}". '
                f'Expected format: owner/repo or https://github.com/owner/repo'
            )
        owner, repo = repo_info
        branch = website.github_branch or DEFAULT_BRANCH
        base_path = (website.github_path or DEFAULT_PATH).strip('/')
        slug = slugify(draft.title)
        new_branch = f"article/{slug}-{int(time.time() * 1000)}"

        self.ensure_repository(owner, repo, website)
        sha = self._base_sha(owner, repo, branch)

        self._request('POST', f'/repos/{owner}/{repo}/git/refs', json={
            'ref': f'refs/heads/{new_branch}',
            'sha': sha,
        })

        mdx = f"---\n{render_frontmatter(draft)}\n---\n\n{draft.content}"
        file_path = f"{base_path}/{slug}.mdx" if base_path else f"{slug}.mdx"
        self._request('PUT', f'/repos/{owner}/{repo}/contents/{file_path}', json={
            'message': f"Add article: {draft.title}",
            'content': base64.b64encode(mdx.encode('utf-8')).decode('ascii'),
            'branch': new_branch,
        })

        pr = self._request('POST', f'/repos/{owner}/{repo}/pulls', json={
            'title': f"New Article: {draft.title}",
            'head': new_branch,
            'base': branch,
            'body': (
                f"## New Article Draft\n\n**Title:** {draft.title}\n\n**Excerpt:** {draft.excerpt}\n\n"
                f"**Stats:**\n- Word Count: {draft.word_count}\n"
                f"- Readability Score: {draft.readability_score}/100\n"
                f"- Keyword Density: {draft.keyword_density}%\n"
            ),
        })
        logger.info(f"Pull request created: {pr['html_url']}")
        return pr['html_url']
