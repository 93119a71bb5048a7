"""Kintree - family tree backend.

FastAPI server exposing tree management, person editing, GEDCOM and backup
exchange, relationship queries and reports.
"""

import logging
from contextlib import asynccontextmanager

from config import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("kintree")

from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from backup import BackupFormatError
from gedcom_utils import GedcomParseError, decode_gedcom_bytes
from models import Person, PersonCreate, PersonUpdate
from relationships import Relationship, find_relationship
from storage import JsonDirectoryTreeStore, StorageError
from traversal import (
    get_ancestors_hierarchically,
    get_ancestors_with_relationship,
    get_descendants_with_relationship,
    get_family_context,
    get_siblings_with_relationship,
)
from tree_stats import compute_statistics
from workspace import TreeNotFoundError, TreeWorkspace

# Global state
workspace: TreeWorkspace | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - open the tree store and load the trees."""
    global workspace

    current = get_settings()
    logger.info(f"Opening tree store in {current.data_dir}")
    workspace = TreeWorkspace(
        JsonDirectoryTreeStore(current.data_dir),
        default_tree_name=current.default_tree_name,
    )
    await workspace.load()
    logger.info(f"✓ Loaded {len(workspace.trees)} trees")

    yield

    workspace = None
    logger.info("✓ Tree store closed")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Family tree editor with GEDCOM exchange and relationship finder",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_workspace() -> TreeWorkspace:
    if workspace is None:
        raise HTTPException(status_code=503, detail="Tree store not loaded")
    return workspace


def require_person(ws: TreeWorkspace, person_id: str) -> Person:
    person = ws.get_person_by_id(person_id)
    if person is None:
        logger.warning(f"Person {person_id} not found in active tree")
        raise HTTPException(status_code=404, detail=f"Person with ID {person_id} not found")
    return person


# Request/Response models
class TreeCreateRequest(BaseModel):
    """Request to create an empty tree."""
    name: str


class TreeSummary(BaseModel):
    """A tree without its people."""
    id: str
    name: str
    person_count: int
    active: bool


class ImportResponse(BaseModel):
    """Response after importing a GEDCOM file or a backup."""
    message: str
    tree_id: str
    individual_count: int


class RelativeResponse(BaseModel):
    """A relative found by a report."""
    person: Person
    relationship: str | None = None
    generation: int | None = None


class FamilyContextResponse(BaseModel):
    """Resolved immediate family of a person."""
    parents: list[Person]
    spouses: list[Person]
    children: list[Person]


class StatisticsResponse(BaseModel):
    """Summary statistics for the active tree."""
    total_people: int
    male_count: int
    female_count: int
    average_lifespan: str
    oldest_living_person: Person | None = None
    oldest_person_ever: Person | None = None


def _summaries(ws: TreeWorkspace) -> list[TreeSummary]:
    return [
        TreeSummary(id=tree.id, name=tree.name, person_count=len(tree.people), active=tree.id == ws.active_tree_id)
        for tree in ws.trees.values()
    ]


# Endpoints

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "store_loaded": workspace is not None,
    }


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------

@app.get("/trees", response_model=list[TreeSummary])
async def list_trees(ws: TreeWorkspace = Depends(get_workspace)):
    """List every tree."""
    return _summaries(ws)


@app.post("/trees", response_model=TreeSummary, status_code=201)
async def create_tree(request: TreeCreateRequest, ws: TreeWorkspace = Depends(get_workspace)):
    """Create an empty tree and make it active."""
    try:
        tree = await ws.create_tree(request.name)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Failed to save tree: {e}")
    return TreeSummary(id=tree.id, name=tree.name, person_count=0, active=True)


@app.post("/trees/{tree_id}/activate", response_model=list[TreeSummary])
async def activate_tree(tree_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    """Switch the active tree."""
    try:
        await ws.switch_tree(tree_id)
    except TreeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Tree with ID {tree_id} not found")
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Failed to save active tree: {e}")
    return _summaries(ws)


@app.delete("/trees/{tree_id}", status_code=204)
async def delete_tree(tree_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    """Delete a tree."""
    try:
        await ws.delete_tree(tree_id)
    except TreeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Tree with ID {tree_id} not found")
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Failed to delete tree: {e}")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

@app.get("/people", response_model=list[Person])
async def list_people(ws: TreeWorkspace = Depends(get_workspace)):
    """Get all people of the active tree."""
    people = ws.people
    logger.info(f"Returning {len(people)} people")
    return people


@app.get("/people/{person_id}", response_model=Person)
async def get_person(person_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    return require_person(ws, person_id)


@app.post("/people", response_model=Person, status_code=201)
async def add_person(data: PersonCreate, ws: TreeWorkspace = Depends(get_workspace)):
    """Add a person to the active tree."""
    if ws.active_tree is None:
        raise HTTPException(status_code=400, detail="No active tree. Create one first.")
    try:
        return await ws.add_person(data)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Failed to save tree: {e}")


@app.patch("/people/{person_id}", response_model=Person)
async def update_person(person_id: str, patch: PersonUpdate, ws: TreeWorkspace = Depends(get_workspace)):
    """Update a person; relationship fields are mirrored onto the relatives."""
    require_person(ws, person_id)
    if patch.parent_ids and person_id in patch.parent_ids:
        raise HTTPException(status_code=400, detail="A person cannot be their own parent")
    try:
        return await ws.update_person(person_id, patch)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Failed to save tree: {e}")


@app.delete("/people/{person_id}", status_code=204)
async def delete_person(person_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    """Delete a person and every link to them."""
    require_person(ws, person_id)
    try:
        await ws.delete_person(person_id)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Failed to save tree: {e}")
    return Response(status_code=204)


@app.get("/people/{person_id}/family", response_model=FamilyContextResponse)
async def get_person_family(person_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    """Parents, spouses and children of a person."""
    person = require_person(ws, person_id)
    context = get_family_context(person, ws.people)
    return FamilyContextResponse(parents=context.parents, spouses=context.spouses, children=context.children)


# ---------------------------------------------------------------------------
# Relationships and reports
# ---------------------------------------------------------------------------

@app.get("/relationship", response_model=Relationship)
async def get_relationship(
    person1: str = Query(...),
    person2: str = Query(...),
    ws: TreeWorkspace = Depends(get_workspace),
):
    """Describe how two people of the active tree are related."""
    logger.info(f"Finding relationship between {person1} and {person2}")
    result = find_relationship(person1, person2, ws.people)
    if result is None:
        raise HTTPException(status_code=400, detail="Choose two different people from the active tree")
    return result


@app.get("/reports/{person_id}/ancestors", response_model=list[RelativeResponse])
async def ancestors_report(person_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    person = require_person(ws, person_id)
    return [
        RelativeResponse(person=r.person, relationship=r.relationship, generation=r.generation)
        for r in get_ancestors_with_relationship(person, ws.people)
    ]


@app.get("/reports/{person_id}/ancestors/hierarchy", response_model=list[RelativeResponse])
async def ancestors_hierarchy_report(person_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    person = require_person(ws, person_id)
    return [
        RelativeResponse(person=entry.person, generation=entry.level)
        for entry in get_ancestors_hierarchically(person, ws.people)
    ]


@app.get("/reports/{person_id}/descendants", response_model=list[RelativeResponse])
async def descendants_report(person_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    person = require_person(ws, person_id)
    return [
        RelativeResponse(person=r.person, relationship=r.relationship, generation=r.generation)
        for r in get_descendants_with_relationship(person, ws.people)
    ]


@app.get("/reports/{person_id}/siblings", response_model=list[RelativeResponse])
async def siblings_report(person_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    person = require_person(ws, person_id)
    return [
        RelativeResponse(person=r.person, relationship=r.relationship)
        for r in get_siblings_with_relationship(person, ws.people)
    ]


@app.get("/statistics", response_model=StatisticsResponse)
async def tree_statistics(ws: TreeWorkspace = Depends(get_workspace)):
    stats = compute_statistics(ws.people)
    return StatisticsResponse(**vars(stats))


# ---------------------------------------------------------------------------
# GEDCOM and backups
# ---------------------------------------------------------------------------

@app.post("/upload-gedcom", response_model=ImportResponse)
async def upload_gedcom(file: UploadFile = File(...), ws: TreeWorkspace = Depends(get_workspace)):
    """Import a GEDCOM file as a new tree."""
    logger.info(f"Received GEDCOM file upload: {file.filename}")

    if not file.filename or not file.filename.lower().endswith((".ged", ".gedcom")):
        logger.warning(f"Invalid file type: {file.filename}")
        raise HTTPException(status_code=400, detail="File must be a GEDCOM file (.ged or .gedcom)")

    content = await file.read()
    logger.debug(f"Read {len(content)} bytes from file")

    try:
        tree = await ws.import_gedcom(decode_gedcom_bytes(content), file.filename)
    except GedcomParseError as e:
        logger.error(f"Failed to parse GEDCOM file: {e}")
        raise HTTPException(status_code=400, detail=f"Failed to parse GEDCOM file: {e}")
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Failed to save imported tree: {e}")

    return ImportResponse(
        message=f'Successfully imported {len(tree.people)} individuals into new tree "{tree.name}".',
        tree_id=tree.id,
        individual_count=len(tree.people),
    )


@app.get("/trees/{tree_id}/gedcom")
async def export_gedcom(tree_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    """Download a tree as GEDCOM."""
    try:
        filename, content = ws.export_gedcom(tree_id)
    except TreeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Tree with ID {tree_id} not found")
    return Response(
        content=content,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/trees/{tree_id}/backup")
async def backup_tree(tree_id: str, ws: TreeWorkspace = Depends(get_workspace)):
    """Download a lossless JSON backup of a tree."""
    try:
        filename, content = ws.backup_tree(tree_id)
    except TreeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Tree with ID {tree_id} not found")
    return Response(
        content=content,
        media_type="application/json; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/upload-backup", response_model=ImportResponse)
async def upload_backup(file: UploadFile = File(...), ws: TreeWorkspace = Depends(get_workspace)):
    """Restore a JSON backup as a new tree."""
    content = await file.read()
    try:
        tree = await ws.import_backup(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, BackupFormatError) as e:
        logger.error(f"Backup import failed: {e}")
        raise HTTPException(status_code=400, detail=f"Failed to import backup file: {e}")
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Failed to save restored tree: {e}")

    return ImportResponse(
        message=f'Successfully imported tree. It has been added as "{tree.name}" and is now active.',
        tree_id=tree.id,
        individual_count=len(tree.people),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
