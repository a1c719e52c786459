# feature_space.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from scipy.sparse import csr_matrix, hstack
from sklearn.feature_extraction.text import TfidfVectorizer

from ..core.errors import check_state


class BowSpace:
    """TF-IDF bag-of-words space: word n-grams, optionally stacked with char n-grams.

    ``initialize`` fits the vocabulary on the given texts only and returns their
    vectors; ``process_document`` maps a new text through the fixed vocabulary.
    Vectors are ``1 x n`` CSR rows.
    """

    def __init__(
        self,
        word_ngram: Tuple[int, int] = (1, 2),
        char_ngram: Optional[Tuple[int, int]] = None,
        min_df: int = 2,
        max_word_features: Optional[int] = 50000,
        max_char_features: Optional[int] = 100000,
        sublinear_tf: bool = True,
    ):
        self.word_ngram = tuple(word_ngram)
        self.char_ngram = tuple(char_ngram) if char_ngram else None
        self.min_df = min_df
        self.max_word_features = max_word_features
        self.max_char_features = max_char_features
        self.sublinear_tf = sublinear_tf
        self.tfw: Optional[TfidfVectorizer] = None
        self.tfc: Optional[TfidfVectorizer] = None

    @property
    def is_initialized(self) -> bool:
        return self.tfw is not None

    def initialize(self, texts: Sequence[str]) -> List[csr_matrix]:
        check_state(not self.is_initialized, "bow space is already initialized")
        texts = list(texts)
        self.tfw = TfidfVectorizer(ngram_range=self.word_ngram, min_df=self.min_df,
                                   max_features=self.max_word_features, sublinear_tf=self.sublinear_tf)
        X = self.tfw.fit_transform(texts)
        if self.char_ngram:
            self.tfc = TfidfVectorizer(analyzer="char", ngram_range=self.char_ngram, min_df=self.min_df,
                                       max_features=self.max_char_features)
            X = hstack([X, self.tfc.fit_transform(texts)])
        X = csr_matrix(X)
        return [X[i] for i in range(X.shape[0])]

    def process_document(self, text: str) -> csr_matrix:
        check_state(self.is_initialized, "bow space is not initialized")
        X = self.tfw.transform([text])
        if self.tfc is not None:
            X = hstack([X, self.tfc.transform([text])])
        return csr_matrix(X)

    @property
    def vocabulary(self) -> Dict[str, int]:
        """Term to column map; char n-grams are prefixed with ``char:`` and offset past the words."""
        check_state(self.is_initialized, "bow space is not initialized")
        vocab = {str(k): int(v) for k, v in self.tfw.vocabulary_.items()}
        if self.tfc is not None:
            offset = len(self.tfw.vocabulary_)
            vocab.update({f"char:{k}": offset + int(v) for k, v in self.tfc.vocabulary_.items()})
        return vocab
