from schemas.document import DocumentSource, RawDocument
from schemas.chunk import Chunk, ChunkMetadata, IndexRecord
from schemas.search import SearchHit, query_key
