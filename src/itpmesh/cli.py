"""Click CLI entry point for the itpmesh converter."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from itpmesh import __version__
from itpmesh.converter import convert_scene
from itpmesh.errors import ItpError
from itpmesh.exporter import export_glb
from itpmesh.inspection import inspect_scene
from itpmesh.inspection import render_text as render_inspection_text
from itpmesh.itp_writer import write_itp
from itpmesh.manifest import build_manifest
from itpmesh.models import ConvertOptions
from itpmesh.parser import parse_scene
from itpmesh.validation import validate
from itpmesh.warning_policy import WarningPolicy, parse_code_list

_SOURCE_SUFFIXES = (".scene.yaml", ".scene.yml", ".yaml", ".yml", ".json")


def _build_warning_policy(
    warn_as_error: str | None, suppress_warning: str | None
) -> WarningPolicy | None:
    """Parse CLI warning options into a WarningPolicy, or None if unset."""
    if warn_as_error is None and suppress_warning is None:
        return None
    try:
        wae = parse_code_list(warn_as_error) if warn_as_error else frozenset()
        sup = parse_code_list(suppress_warning) if suppress_warning else frozenset()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    return WarningPolicy(warn_as_error=wae, suppress=sup)


def _source_stem(path: Path) -> str:
    """Strip the scene suffix from an input file name."""
    name = path.name
    for suffix in _SOURCE_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return path.stem


_warn_as_error_option = click.option(
    "--warn-as-error",
    "warn_as_error",
    type=str,
    default=None,
    help="Comma-separated W-codes to treat as errors (e.g. W01,W02), or 'all'.",
)
_suppress_warning_option = click.option(
    "--suppress-warning",
    "suppress_warning",
    type=str,
    default=None,
    help="Comma-separated W-codes to suppress (e.g. W03), or 'all'.",
)


@click.group()
@click.version_option(version=__version__, prog_name="itpmesh")
def main() -> None:
    """itpmesh: convert interchange scenes into ITP runtime meshes."""


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help=(
        "Output directory for ITP files, or output .glb path for --format glb. "
        "Defaults to the input's directory (ITP) or the input name with .glb extension."
    ),
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["itp", "glb"]),
    default="itp",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--no-skin",
    is_flag=True,
    default=False,
    help="Skip skin influence packing and skeleton output.",
)
@click.option(
    "--no-blend-shapes",
    is_flag=True,
    default=False,
    help="Skip blend-shape delta extraction.",
)
@click.option(
    "--max-bones",
    type=click.IntRange(1, 256),
    default=256,
    show_default=True,
    help="Maximum number of bones per mesh.",
)
@_warn_as_error_option
@_suppress_warning_option
@click.option(
    "--emit-manifest",
    "emit_manifest",
    type=click.Path(path_type=Path),
    default=None,
    help="Write a JSON build manifest to this path after a successful convert.",
)
def convert(
    input_file: Path,
    output: Path | None,
    output_format: str = "itp",
    no_skin: bool = False,
    no_blend_shapes: bool = False,
    max_bones: int = 256,
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
    emit_manifest: Path | None = None,
) -> None:
    """Convert a source scene to ITP mesh files or a GLB."""
    warning_policy = _build_warning_policy(warn_as_error, suppress_warning)
    options = ConvertOptions(
        compute_skinning=not no_skin,
        compute_blend_shapes=not no_blend_shapes,
        max_bones=max_bones,
    )

    try:
        scene = parse_scene(input_file)
        validate(scene)
        meshes = convert_scene(scene, options=options, warning_policy=warning_policy)

        written: list[Path] = []
        if output_format == "glb":
            glb_path = output or input_file.parent / f"{_source_stem(input_file)}.glb"
            export_glb(meshes, glb_path)
            written.append(glb_path)
        else:
            output_dir = output or input_file.parent
            taken: set[Path] = set()
            for mesh in meshes:
                written.extend(write_itp(mesh, output_dir, taken))

        if emit_manifest is not None:
            manifest = build_manifest(
                input_path=input_file,
                output_paths=written,
                output_format=output_format,
                command_args=sys.argv[1:],
            )
            emit_manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    except ItpError as e:
        raise click.ClickException(str(e))

    for path in written:
        click.echo(f"Wrote: {path}")


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Inspection output format.",
)
@_warn_as_error_option
@_suppress_warning_option
def inspect(
    input_file: Path,
    output_format: str = "text",
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
) -> None:
    """Inspect a source scene without writing any output."""
    warning_policy = _build_warning_policy(warn_as_error, suppress_warning)

    try:
        scene = parse_scene(input_file)
        validate(scene)
        payload = inspect_scene(scene, warning_policy=warning_policy)
    except ItpError as e:
        raise click.ClickException(str(e))

    if output_format == "json":
        click.echo(json.dumps(payload, indent=2))
    else:
        click.echo(render_inspection_text(payload), nl=False)
