"""
Tests for the code generators.
"""
import importlib.util
import sys
from dataclasses import is_dataclass
from pathlib import Path

import pytest

from prisma_client import PrismaClient
from prisma_client.config import GeneratorEntry, ProjectConfig, load_project
from prisma_client.errors import GeneratorError, SchemaError, UnsupportedGeneratorError
from prisma_client.generator import (
    GraphQLSchemaGenerator,
    PythonClientGenerator,
    TemplateLoader,
    generate,
    get_generator,
    resolve_output,
)
from prisma_client.generator.python_client import delegate_attribute, python_name
from prisma_client.schema import parse_datamodel

from conftest import SAMPLE_DATAMODEL, make_settings


@pytest.fixture
def project_dir(tmp_path):
    """A project directory with a datamodel and both generators configured."""
    (tmp_path / "datamodel.prisma").write_text(SAMPLE_DATAMODEL)
    (tmp_path / "prisma.yml").write_text(
        "endpoint: http://localhost:4466/blog/dev\n"
        "datamodel: datamodel.prisma\n"
        "generate:\n"
        "  - generator: python-client\n"
        "    output: ./generated/blog_client.py\n"
        "  - generator: graphql-schema\n"
        "    output: ./generated/\n"
    )
    return tmp_path


def make_project(tmp_path, *entries):
    return ProjectConfig(
        datamodel=["datamodel.prisma"],
        generate=[GeneratorEntry(g, o) for g, o in entries],
        root=tmp_path,
    )


def import_generated(path: Path, monkeypatch):
    name = f"generated_{path.stem}"
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    monkeypatch.setitem(sys.modules, name, module)
    spec.loader.exec_module(module)
    return module


class TestGraphQLSchema:
    """Test the graphql-schema generator."""

    @pytest.fixture
    def sdl(self, datamodel, tmp_path):
        return GraphQLSchemaGenerator().render(datamodel, make_project(tmp_path))

    def test_header(self, datamodel, sdl):
        assert sdl.startswith("# Code generated by prisma-client (graphql-schema). DO NOT EDIT.")
        assert datamodel.fingerprint in sdl

    def test_root_fields(self, sdl):
        assert "  user(where: UserWhereUniqueInput!): User\n" in sdl
        assert "  createUser(data: UserCreateInput!): User!\n" in sdl
        assert "  updateUser(data: UserUpdateInput!, where: UserWhereUniqueInput!): User\n" in sdl
        assert "  deleteManyPosts(where: PostWhereInput): BatchPayload!\n" in sdl
        assert "  updateManyTags(data: TagUpdateManyMutationInput!, where: TagWhereInput): BatchPayload!\n" in sdl
        assert "upsertProfile(where: ProfileWhereUniqueInput!, create: ProfileCreateInput!" in sdl

    def test_batch_payload_is_count_only(self, sdl):
        assert "type BatchPayload {\n  count: Long!\n}" in sdl

    def test_nested_input_names(self, sdl):
        assert "input PostCreateManyWithoutAuthorInput {" in sdl
        assert "input UserUpdateOneRequiredWithoutPostsInput {" in sdl
        assert "input ProfileUpdateOneWithoutUserInput {" in sdl
        assert "input TagUpdateManyWithoutPostsInput {" in sdl
        assert "input PostUpsertWithWhereUniqueWithoutAuthorInput {" in sdl

    def test_list_relation_directives(self, sdl):
        block = sdl.split("input TagUpdateManyWithoutPostsInput {\n", 1)[1].split("}", 1)[0]
        directives = [line.split(":")[0].strip() for line in block.splitlines()]

        assert directives == ["create", "delete", "connect", "set", "disconnect", "update", "upsert"]

    def test_required_to_one_cannot_disconnect(self, sdl):
        required = sdl.split("input UserUpdateOneRequiredWithoutPostsInput {\n", 1)[1].split("}", 1)[0]
        optional = sdl.split("input ProfileUpdateOneWithoutUserInput {\n", 1)[1].split("}", 1)[0]

        assert "disconnect" not in required
        assert "  disconnect: Boolean\n" in optional

    def test_enums(self, sdl):
        assert "enum Role {\n  ADMIN\n  EDITOR\n  READER\n}" in sdl
        assert "  email_ASC\n  email_DESC\n" in sdl


class TestPythonClient:
    """Test the python-client generator."""

    def test_names(self, datamodel):
        assert python_name("from") == "from_"
        assert python_name("email") == "email"
        assert delegate_attribute(datamodel.model("User")) == "user"
        assert delegate_attribute(parse_datamodel("type Model { id: ID! @id }").model("Model")) is None

    def test_module_source(self, datamodel, tmp_path):
        source = PythonClientGenerator().render(datamodel, make_project(tmp_path))

        assert "class Role(str, Enum):" in source
        assert "class UserWhereUniqueInput(TypedDict, total=False):" in source
        assert "    async def update_many(self, data: dict[str, Any], where: dict[str, Any] | None = None)" in source
        assert "self.user = UserDelegate(self.model('User'))" in source
        compile(source, "blog_client.py", "exec")

    def test_requires_source(self, tmp_path):
        datamodel = parse_datamodel(SAMPLE_DATAMODEL)
        datamodel.source = None

        with pytest.raises(GeneratorError, match="source text"):
            PythonClientGenerator().render(datamodel, make_project(tmp_path))

    @pytest.mark.asyncio
    async def test_generated_client_runs(self, project_dir, monkeypatch):
        project = load_project(project_dir)
        [client_file, _] = generate(project)
        module = import_generated(client_file.path, monkeypatch)

        prisma = module.Prisma.in_memory(module.DATAMODEL, settings=make_settings())
        assert isinstance(prisma, PrismaClient)

        user = await prisma.user.create({"email": "a@b.c"})
        assert is_dataclass(user)
        assert user.email == "a@b.c"
        assert user.role is module.Role.READER

        payload = await prisma.post.delete_many()
        assert payload.count == 0

        assert await prisma.user.find_unique({"email": "nobody@b.c"}) is None
        assert [u.email for u in await prisma.user.find_many()] == ["a@b.c"]


class TestGenerate:
    """Test running a project's generate entries."""

    def test_writes_outputs(self, project_dir):
        files = generate(load_project(project_dir))

        assert [f.generator for f in files] == ["python-client", "graphql-schema"]
        assert files[0].path == project_dir.resolve() / "generated" / "blog_client.py"
        assert files[1].path == project_dir.resolve() / "generated" / "prisma.graphql"
        assert files[1].path.read_text(encoding="utf-8") == files[1].content
        assert "ENDPOINT: str | None = 'http://localhost:4466/blog/dev'" in files[0].content
        assert files[0].fingerprint == files[1].fingerprint

    def test_dry_run(self, project_dir):
        files = generate(load_project(project_dir), write=False)

        assert len(files) == 2
        assert not (project_dir / "generated").exists()

    def test_no_entries(self, tmp_path):
        assert generate(make_project(tmp_path)) == []

    def test_unknown_generator_writes_nothing(self, tmp_path):
        (tmp_path / "datamodel.prisma").write_text(SAMPLE_DATAMODEL)
        project = make_project(tmp_path, ("graphql-schema", "./out/"), ("typescript-client", "./ts/"))

        with pytest.raises(UnsupportedGeneratorError):
            generate(project)
        assert not (tmp_path / "out").exists()

    def test_missing_datamodel(self, tmp_path):
        with pytest.raises(SchemaError, match="not found"):
            generate(make_project(tmp_path, ("graphql-schema", "./out/")))

    def test_get_generator(self):
        assert isinstance(get_generator("graphql-schema"), GraphQLSchemaGenerator)

        with pytest.raises(UnsupportedGeneratorError):
            get_generator("go-client")

    @pytest.mark.parametrize(
        "output,expected",
        [
            ("./generated/", "generated/prisma.graphql"),
            ("./generated/api.graphql", "generated/api.graphql"),
            ("schema.graphql", "schema.graphql"),
        ],
    )
    def test_resolve_output(self, tmp_path, output, expected):
        project = make_project(tmp_path)
        path = resolve_output(project, GeneratorEntry("graphql-schema", output), "prisma.graphql")
        assert path == (tmp_path / expected)

    def test_resolve_existing_directory(self, tmp_path):
        (tmp_path / "generated").mkdir()
        path = resolve_output(make_project(tmp_path), GeneratorEntry("python-client", "generated"), "prisma_client.py")
        assert path == tmp_path / "generated" / "prisma_client.py"


class TestTemplateLoader:
    """Test template rendering."""

    def test_hash_is_stable(self, datamodel, tmp_path):
        loader = TemplateLoader()
        context = {"header": "# x", **GraphQLSchemaGenerator().context(datamodel, make_project(tmp_path))}

        first = loader.render("prisma.graphql", context)
        second = loader.render("/prisma.graphql.j2", context)

        assert first.template_id == second.template_id == "prisma.graphql.j2"
        assert first.template_hash == second.template_hash
        assert len(first.template_hash) == 64

    def test_custom_templates(self, tmp_path):
        (tmp_path / "hello.txt.j2").write_text("hello {{ name }}")
        loader = TemplateLoader(base_path=tmp_path)

        assert loader.render("hello.txt", {"name": "world"}).text == "hello world"

    def test_missing_variable_is_an_error(self, tmp_path):
        from jinja2 import UndefinedError

        (tmp_path / "hello.txt.j2").write_text("hello {{ name }}")

        with pytest.raises(UndefinedError):
            TemplateLoader(base_path=tmp_path).render("hello.txt", {})


class TestFromProject:
    """Test building a client from a project file."""

    def test_project_endpoint_wins(self, project_dir):
        client = PrismaClient.from_project(project_dir, settings=make_settings())

        assert client.endpoint == "http://localhost:4466/blog/dev"
        assert set(client.datamodel.models) == {"User", "Post", "Profile", "Tag"}
