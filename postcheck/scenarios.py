"""Built-in scenarios for the posts API contract.

The catalog covers listing and filtering posts, the authentication guard,
registration, and the create, read, update and delete lifecycle. Every
scenario builds its requests from its own fixtures, so scenarios can run
in any order or concurrently.
"""

from typing import Any, Dict, Iterable, List, Optional

from .assertions import (
    CollectionContains,
    FieldEquals,
    FieldNotEmpty,
    FieldPresent,
    HeaderContains,
    SequentialEquals,
    StatusEquals,
)
from .context import ref
from .exceptions import ConfigurationError
from .scenario import RetryPolicy, Scenario, Step

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

JSON_HEADERS = {"Content-Type": JSON_CONTENT_TYPE}

AUTH_HEADERS = {
    "Content-Type": "application/json",
    "Authorization": "Bearer {session.access_token}",
}

POST_PAYLOAD = {
    "userId": ref("post.user_id"),
    "title": ref("post.title"),
    "body": ref("post.body"),
}

UPDATE_PAYLOAD = {
    "userId": ref("post.user_id"),
    "title": ref("update_title"),
    "body": ref("update_body"),
}


def _update_values(generator: Any) -> Dict[str, Any]:
    return {
        "update_title": generator.random_alphanumeric(),
        "update_body": generator.random_alphanumeric(),
    }


def register_step() -> Step:
    return Step(
        name="register user",
        method="POST",
        path="/register",
        body={"email": ref("credential.email"), "password": ref("credential.password")},
        expectations=[StatusEquals(201), FieldNotEmpty("accessToken")],
        extract={"session.access_token": "accessToken"},
    )


def create_step(path: str = "/posts") -> Step:
    return Step(
        name="create post",
        method="POST",
        path=path,
        headers=AUTH_HEADERS,
        body=POST_PAYLOAD,
        expectations=[StatusEquals(201), FieldPresent("id")],
        extract={"post.id": "id"},
    )


def read_step(name: str = "read post", check_content: bool = False) -> Step:
    expectations = [StatusEquals(200), FieldEquals("id", ref("post.id"))]
    if check_content:
        expectations += [
            FieldEquals("title", ref("post.title")),
            FieldEquals("body", ref("post.body")),
        ]
    return Step(
        name=name,
        method="GET",
        path="/posts/{post.id}",
        expectations=expectations,
    )


def update_step() -> Step:
    return Step(
        name="update post",
        method="PUT",
        path="/posts/{post.id}",
        headers=AUTH_HEADERS,
        body=UPDATE_PAYLOAD,
        expectations=[
            StatusEquals(200),
            FieldEquals("id", ref("post.id")),
            FieldEquals("title", ref("update_title")),
            FieldEquals("body", ref("update_body")),
        ],
        extract={"post.title": "title", "post.body": "body"},
    )


def read_updated_step() -> Step:
    return Step(
        name="read updated post",
        method="GET",
        path="/posts/{post.id}",
        expectations=[
            StatusEquals(200),
            FieldEquals("id", ref("post.id")),
            FieldEquals("title", ref("update_title")),
            FieldEquals("body", ref("update_body")),
        ],
    )


def read_deleted_step(name: str, retry: Optional[RetryPolicy] = None) -> Step:
    return Step(
        name=name,
        method="GET",
        path="/posts/{post.id}",
        expectations=[StatusEquals(404)],
        retry=retry,
    )


def build_catalog(read_after_delete_retries: int = 0, retry_base_delay: float = 0.5) -> List[Scenario]:
    """Return the built-in scenarios in their canonical order.

    Args:
        read_after_delete_retries: Retries allowed for the first read after a
            delete. Zero means the 404 must be immediate.
        retry_base_delay: Base backoff delay for those retries in seconds
    """
    retry = None
    if read_after_delete_retries > 0:
        retry = RetryPolicy(
            max_retries=read_after_delete_retries,
            base_delay=retry_base_delay,
            jitter=True,
        )

    return [
        Scenario(
            name="list-posts",
            description="Get all posts. Verify status code and content type.",
            steps=[
                Step(
                    name="list posts",
                    method="GET",
                    path="/posts",
                    headers=JSON_HEADERS,
                    expectations=[
                        StatusEquals(200),
                        HeaderContains("Content-Type", JSON_CONTENT_TYPE),
                    ],
                ),
            ],
        ),
        Scenario(
            name="first-ten-posts",
            description="Get only the first 10 posts. Verify ids 1..10 in order.",
            steps=[
                Step(
                    name="list first page",
                    method="GET",
                    path="/posts?_start=0&_end=10",
                    headers=JSON_HEADERS,
                    expectations=[
                        StatusEquals(200),
                        SequentialEquals("", lambda i: i + 1, field="id", count=10),
                    ],
                ),
            ],
        ),
        Scenario(
            name="posts-by-id",
            description="Get posts with id 55 and 60. Verify the returned ids.",
            steps=[
                Step(
                    name="filter by id",
                    method="GET",
                    path="/posts?id=55&id=60",
                    headers=JSON_HEADERS,
                    expectations=[
                        StatusEquals(200),
                        CollectionContains("", 55),
                        CollectionContains("", 60),
                    ],
                ),
            ],
        ),
        Scenario(
            name="create-unauthorized",
            description="Create a post without an access token. Verify 401.",
            steps=[
                Step(
                    name="create without token",
                    method="POST",
                    path="/664/posts",
                    headers=JSON_HEADERS,
                    expectations=[StatusEquals(401)],
                ),
            ],
        ),
        Scenario(
            name="create-with-token",
            description="Register, create a post with the access token, read it back.",
            steps=[register_step(), create_step("/664/posts"), read_step()],
        ),
        Scenario(
            name="create-with-json-body",
            description="Register, create a post from a JSON body, verify the stored fields.",
            steps=[register_step(), create_step(), read_step(check_content=True)],
        ),
        Scenario(
            name="update-missing",
            description="Update a post that does not exist. Verify 404.",
            steps=[
                Step(
                    name="update missing post",
                    method="PUT",
                    path="/posts/{post.id}",
                    headers=JSON_HEADERS,
                    body=POST_PAYLOAD,
                    expectations=[StatusEquals(404)],
                ),
            ],
        ),
        Scenario(
            name="create-and-update",
            description="Register, create a post, update it, verify the update is stored.",
            steps=[register_step(), create_step(), update_step(), read_updated_step()],
            variables=_update_values,
        ),
        Scenario(
            name="delete-missing",
            description="Delete a post that does not exist. Verify 404.",
            steps=[
                Step(
                    name="delete missing post",
                    method="DELETE",
                    path="/posts/{post.id}",
                    headers=JSON_HEADERS,
                    expectations=[StatusEquals(404)],
                ),
            ],
        ),
        Scenario(
            name="post-lifecycle",
            description="Register, create, read, update, delete, then verify the post is gone.",
            steps=[
                register_step(),
                create_step(),
                read_step(check_content=True),
                update_step(),
                Step(
                    name="delete post",
                    method="DELETE",
                    path="/posts/{post.id}",
                    headers=AUTH_HEADERS,
                    expectations=[StatusEquals(200)],
                ),
                read_deleted_step("read deleted post", retry=retry),
                read_deleted_step("read deleted post again"),
            ],
            variables=_update_values,
        ),
    ]


def select_scenarios(catalog: List[Scenario], names: Optional[Iterable[str]] = None) -> List[Scenario]:
    """Pick scenarios by name, keeping catalog order.

    Raises:
        ConfigurationError: If a name is not in the catalog
    """
    if not names:
        return list(catalog)

    wanted = list(names)
    known = {scenario.name for scenario in catalog}
    unknown = [name for name in wanted if name not in known]
    if unknown:
        raise ConfigurationError(
            f"Unknown scenario(s): {', '.join(unknown)}",
            details={"available": sorted(known)},
        )
    return [scenario for scenario in catalog if scenario.name in wanted]
